"""aligntext CLI - Command-line interface for aligned parallel reading.

Primary Commands:
  - map: Show the A->B and B->A index maps for given lengths and anchors
  - lookup: Map one index to its counterpart
  - extract: Extract the block sequence of an AO3 work (URL or saved HTML)
  - navigate: Load two works and navigate from a block to its counterpart
  - read: Interactive reading session (navigate, set and remove anchors)
  - view: Generate a static two-panel HTML reader for two works
  - check-url: Check whether a URL is an AO3 work URL
"""

from __future__ import annotations

import logging
import typer
from rich import print
from rich.markup import escape
from rich.table import Table

from .analysis.alignment import AlignmentEngine, AlignmentError, OutOfRange
from .fetchers.ao3_fetcher import is_valid_ao3_url
from .util.types import Anchor, Side


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _parse_anchor(spec: str) -> tuple[int, int]:
	"""Parse 'A:B' (0-based block indices) into a pair of ints."""
	parts = spec.replace(",", ":").split(":")
	if len(parts) != 2:
		raise typer.BadParameter(f"Anchor must look like INDEX_A:INDEX_B, got {spec!r}")
	try:
		return int(parts[0]), int(parts[1])
	except ValueError:
		raise typer.BadParameter(f"Anchor indices must be integers, got {spec!r}")


def _build_engine(len_a: int, len_b: int, anchors: list[str] | None) -> AlignmentEngine:
	try:
		engine = AlignmentEngine(len_a, len_b)
		for spec in anchors or []:
			index_a, index_b = _parse_anchor(spec)
			engine.add_anchor(index_a, index_b)
	except (AlignmentError, ValueError) as e:
		raise typer.BadParameter(str(e))
	return engine


def _load_work(source: str):
	from .parsers.ao3 import load_work_source
	try:
		return load_work_source(source)
	except (ValueError, FileNotFoundError, ConnectionError) as e:
		raise typer.BadParameter(f"{source}: {e}")


def _clip(s: str, width: int = 50) -> str:
	s = s.replace("\n", " ")
	return (s[: width - 1] + "…") if len(s) > width else s


@app.command(name="map")
def map_cmd(
	len_a: int = typer.Argument(..., help="Number of blocks in sequence A"),
	len_b: int = typer.Argument(..., help="Number of blocks in sequence B"),
	anchor: list[str] | None = typer.Option(None, "--anchor", "-a", help="Anchor as INDEX_A:INDEX_B (repeatable)"),
	limit: int = typer.Option(100, help="Max rows to show per direction"),
	as_json: bool = typer.Option(False, "--json", help="Print the mapping as JSON"),
) -> None:
	"""Show both index maps for the given lengths and anchors."""
	engine = _build_engine(len_a, len_b, anchor)
	mapping = engine.mapping

	if as_json:
		import json
		typer.echo(json.dumps(mapping.to_dict()))
		return

	print(f"[green]Mode:[/green] {mapping.mode}  [green]Anchors:[/green] {engine.anchor_count()}  [green]Segments:[/green] {len(mapping.segments)}")

	seg_table = Table(title="Segments")
	for col in ["#", "A range", "B range"]:
		seg_table.add_column(col)
	for i, seg in enumerate(mapping.segments):
		seg_table.add_row(str(i), f"[{seg.start_a}..{seg.end_a}]", f"[{seg.start_b}..{seg.end_b}]")
	print(seg_table)

	anchored_a = {a.index_a for a in engine.anchors}
	anchored_b = {a.index_b for a in engine.anchors}
	for side, values, anchored in ((Side.A, mapping.map_a_to_b, anchored_a), (Side.B, mapping.map_b_to_a, anchored_b)):
		src, dst = side.value.upper(), side.other.value.upper()
		tbl = Table(title=f"{src} -> {dst} (showing {min(limit, len(values))} of {len(values)})")
		tbl.add_column(f"{src} idx")
		tbl.add_column(f"{dst} idx")
		tbl.add_column("Anchor")
		for i, j in enumerate(values[:limit]):
			tbl.add_row(str(i), str(int(j)), "⚓" if i in anchored else "")
		print(tbl)


@app.command(name="lookup")
def lookup_cmd(
	len_a: int = typer.Argument(..., help="Number of blocks in sequence A"),
	len_b: int = typer.Argument(..., help="Number of blocks in sequence B"),
	side: str = typer.Argument(..., help="Source side: a or b"),
	index: int = typer.Argument(..., help="0-based block index on the source side"),
	anchor: list[str] | None = typer.Option(None, "--anchor", "-a", help="Anchor as INDEX_A:INDEX_B (repeatable)"),
) -> None:
	"""Map one index to its counterpart on the other side."""
	engine = _build_engine(len_a, len_b, anchor)
	try:
		source = Side.parse(side)
		mapped = engine.map_index(source, index)
	except (ValueError, OutOfRange) as e:
		raise typer.BadParameter(str(e))
	typer.echo(f"{source.value.upper()}:{index} -> {source.other.value.upper()}:{mapped} ({engine.current_alignment_mode()})")


@app.command(name="extract")
def extract_cmd(
	source: str = typer.Argument(..., help="AO3 work URL or saved HTML file"),
	limit: int = typer.Option(50, help="Max blocks to show"),
) -> None:
	"""Extract and list the block sequence of a work."""
	work = _load_work(source)
	table = Table(title=f"{work.title or 'Untitled'} ({len(work.blocks)} blocks, showing up to {limit})")
	for col in ["#", "type", "chars", "punct", "text"]:
		table.add_column(col)
	for b in work.blocks[:limit]:
		table.add_row(str(b.index), b.block_type, str(b.char_count), str(b.punct_count), _clip(b.text))
	print(table)


@app.command(name="navigate")
def navigate_cmd(
	source_a: str = typer.Argument(..., help="Text A: AO3 work URL or saved HTML file"),
	source_b: str = typer.Argument(..., help="Text B: AO3 work URL or saved HTML file"),
	side: str = typer.Argument(..., help="Panel clicked: a or b"),
	index: int = typer.Argument(..., help="0-based block index clicked"),
	anchor: list[str] | None = typer.Option(None, "--anchor", "-a", help="Anchor as INDEX_A:INDEX_B (repeatable)"),
) -> None:
	"""Navigate from a block to its counterpart, printing both blocks."""
	from .pipelines.reader_session import ConsolePresenter, ReaderSession

	work_a = _load_work(source_a)
	work_b = _load_work(source_b)
	session = ReaderSession(work_a, work_b, presenter=ConsolePresenter(work_a=work_a, work_b=work_b))
	try:
		for spec in anchor or []:
			session.add_anchor(*_parse_anchor(spec))
		session.navigate_to_counterpart(side, index)
	except (AlignmentError, ValueError) as e:
		raise typer.BadParameter(str(e))
	print(f"[green]{session.status_text()}[/green] ({session.engine.current_alignment_mode()})")


READ_HELP = """Commands (block and anchor numbers are 1-based, as displayed):
  a N, b N      click block N of panel A or B (navigates, or completes a pending anchor)
  shift a N     select block N of panel A (or B) as one half of an anchor
  cancel        drop the pending selection
  list          show the anchors
  jump K        show both blocks of anchor K
  rm K          remove anchor K
  clear         remove every anchor and the pending selection
  status        show the anchor count and alignment mode
  help          show this text
  quit          leave (the viewer is written on exit when --out is given)"""


def _one_based(text: str, what: str) -> int:
	try:
		return int(text) - 1
	except ValueError:
		raise ValueError(f"{what} must be a number, got {text!r}")


def _print_anchor_list(session, console) -> None:
	rows = session.anchor_previews()
	if not rows:
		console.print("[dim]No anchors set.[/dim]")
		return
	table = Table(title="Anchors")
	for col in ["#", "A", "B", "A text", "B text"]:
		table.add_column(col)
	for row in rows:
		table.add_row(str(row["position"] + 1), row["a"], row["b"], escape(row["preview_a"]), escape(row["preview_b"]))
	console.print(table)


def _reader_step(session, console, line: str) -> bool:
	"""Apply one interactive command to the session; False means quit."""
	words = line.strip().lower().split()
	if not words:
		return True
	cmd, args = words[0], words[1:]

	if cmd in ("q", "quit", "exit"):
		return False
	if cmd == "help":
		console.print(READ_HELP, markup=False)
	elif cmd in ("a", "b", "shift"):
		shift = cmd == "shift"
		if shift:
			cmd, args = (args[0], args[1:]) if args else ("", [])
		if cmd not in ("a", "b") or len(args) != 1:
			raise ValueError("Expected 'a N', 'b N' or 'shift a N'")
		result = session.handle_block_click(cmd, _one_based(args[0], "Block"), shift=shift)
		if isinstance(result, Anchor):
			console.print(
				f"[green]Anchor A:¶{result.index_a + 1} ↔ B:¶{result.index_b + 1}[/green] "
				f"({session.status_text()})"
			)
	elif cmd == "cancel":
		session.cancel_pending()
		console.print("[dim]Selection cancelled[/dim]")
	elif cmd == "list":
		_print_anchor_list(session, console)
	elif cmd in ("jump", "rm"):
		if len(args) != 1:
			raise ValueError(f"Expected '{cmd} K'")
		position = _one_based(args[0], "Anchor")
		if position < 0:
			done = False
		elif cmd == "jump":
			done = session.jump_to_anchor(position) is not None
		else:
			done = session.remove_anchor_at(position)
			if done:
				console.print(f"Removed anchor {position + 1} ({session.status_text()})")
		if not done:
			console.print(f"[yellow]No anchor {args[0]}[/yellow]")
	elif cmd == "clear":
		session.clear_anchors()
		console.print(f"All anchors cleared ({session.status_text()})")
	elif cmd == "status":
		console.print(f"{session.status_text()} ({session.engine.current_alignment_mode()})")
	else:
		raise ValueError(f"Unknown command {cmd!r}; type 'help'")
	return True


@app.command(name="read")
def read_cmd(
	source_a: str = typer.Argument(..., help="Text A: AO3 work URL or saved HTML file"),
	source_b: str = typer.Argument(..., help="Text B: AO3 work URL or saved HTML file"),
	anchor: list[str] | None = typer.Option(None, "--anchor", "-a", help="Starting anchor as INDEX_A:INDEX_B (repeatable)"),
	out: str | None = typer.Option(None, help="Write a static viewer with the session's anchors here on exit"),
) -> None:
	"""Read two works interactively: navigate between panels and set anchors."""
	from pathlib import Path as _Path
	from rich.console import Console
	from rich.prompt import Prompt
	from .pipelines.reader_session import ConsolePresenter, ReaderSession
	from .viewer.static_viewer import generate_aligned_preview

	work_a = _load_work(source_a)
	work_b = _load_work(source_b)
	console = Console()
	session = ReaderSession(work_a, work_b, presenter=ConsolePresenter(console, work_a, work_b))
	try:
		for spec in anchor or []:
			session.add_anchor(*_parse_anchor(spec))
	except (AlignmentError, ValueError) as e:
		raise typer.BadParameter(str(e))

	console.print(f"[green]Loaded:[/green] {len(work_a.blocks)} blocks from A, {len(work_b.blocks)} blocks from B. Type 'help' for commands.")
	while True:
		try:
			line = Prompt.ask(f"[bold]{session.status_text()}[/bold]", console=console, default="", show_default=False)
		except EOFError:
			break
		try:
			if not _reader_step(session, console, line):
				break
		except (AlignmentError, ValueError) as e:
			console.print(f"[red]{escape(str(e))}[/red]")

	if out:
		res = generate_aligned_preview(work_a, work_b, session.engine, _Path(out), status=session.status_text())
		console.print(f"[green]Viewer written:[/green] {res['out']} ({res['anchors']} anchor(s))")


@app.command(name="view")
def view_cmd(
	source_a: str | None = typer.Argument(None, help="Text A: AO3 work URL or saved HTML file (defaults to last used)"),
	source_b: str | None = typer.Argument(None, help="Text B: AO3 work URL or saved HTML file (defaults to last used)"),
	anchor: list[str] | None = typer.Option(None, "--anchor", "-a", help="Anchor as INDEX_A:INDEX_B (repeatable)"),
	out: str = typer.Option("reader", help="Output directory for static viewer"),
	title: str = typer.Option("Aligned Reader", help="Page title"),
	layout: str = typer.Option("horizontal", help="horizontal or vertical"),
	sync: str = typer.Option("proportional", help="Scroll sync: off or proportional"),
	swap: bool = typer.Option(False, "--swap", help="Show B on the left/top"),
	open_browser: bool = typer.Option(False, "--open", help="Open the viewer in your browser"),
) -> None:
	"""Generate a static two-panel reader for two works."""
	from pathlib import Path as _Path
	from .data.storage import load_last_urls, save_last_urls
	from .pipelines.reader_session import ReaderSession, ReaderSessionConfig
	from .viewer.static_viewer import generate_aligned_preview

	if source_a is None or source_b is None:
		last_a, last_b = load_last_urls()
		source_a = source_a or last_a
		source_b = source_b or last_b
	if not source_a or not source_b:
		raise typer.BadParameter("Provide both texts (no previous pair remembered)")

	try:
		config = ReaderSessionConfig(layout=layout, sync_mode=sync, swapped=swap)
	except ValueError as e:
		raise typer.BadParameter(str(e))

	print("[blue]Fetching texts...[/blue]")
	work_a = _load_work(source_a)
	work_b = _load_work(source_b)
	print(f"[green]Loaded:[/green] {len(work_a.blocks)} blocks from A, {len(work_b.blocks)} blocks from B")

	if is_valid_ao3_url(source_a) and is_valid_ao3_url(source_b):
		save_last_urls(source_a, source_b)

	session = ReaderSession(work_a, work_b, config=config)
	try:
		for spec in anchor or []:
			session.add_anchor(*_parse_anchor(spec))
	except (AlignmentError, ValueError) as e:
		raise typer.BadParameter(str(e))

	res = generate_aligned_preview(
		work_a, work_b, session.engine, _Path(out),
		title=title,
		layout=config.layout,
		sync_mode=config.sync_mode,
		swapped=config.swapped,
		status=session.status_text(),
		open_browser=open_browser,
	)
	print({"preview": res, "status": session.status_text()})


@app.command(name="check-url")
def check_url_cmd(url: str = typer.Argument(..., help="URL to check")) -> None:
	"""Check whether a URL is an AO3 work URL."""
	if is_valid_ao3_url(url):
		print(f"[green]OK[/green] {url}")
	else:
		print(f"[red]Not an AO3 work URL:[/red] {url}")
		raise typer.Exit(code=1)


if __name__ == "__main__":
	app()
