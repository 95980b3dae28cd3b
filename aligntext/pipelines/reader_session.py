"""Reader session: the navigation layer around the alignment engine.

The session turns block clicks and scroll positions into engine queries and
presenter calls. It never reads the mapping arrays directly; every
counterpart comes from ``AlignmentEngine.map_index``.

Like the engine, a session expects all calls from a single control thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, Union

from rich.console import Console
from rich.markup import escape

from ..analysis.alignment import AlignmentEngine, InvalidAnchor, as_index
from ..util.types import Anchor, Block, ExtractedWork, PendingAnchor, Side


logger = logging.getLogger(__name__)


SYNC_MODES = ("off", "proportional")
LAYOUTS = ("horizontal", "vertical")


def format_status(anchor_count: int) -> str:
    return f"{anchor_count} anchor(s)" if anchor_count > 0 else "Ready"


@dataclass
class ReaderSessionConfig:
    """Configuration for a two-panel reading session."""
    layout: str = "horizontal"  # horizontal, vertical
    sync_mode: str = "proportional"  # off, proportional
    swapped: bool = False

    def __post_init__(self) -> None:
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unknown layout: {self.layout!r} (expected one of {LAYOUTS})")
        if self.sync_mode not in SYNC_MODES:
            raise ValueError(f"Unknown sync mode: {self.sync_mode!r} (expected one of {SYNC_MODES})")


class Presenter(Protocol):
    """What the session needs from whatever renders the two panels."""

    def highlight(self, side: Side, index: int) -> None: ...

    def scroll_to(self, side: Side, index: int) -> None: ...

    def show_pending(self, pending: Optional[PendingAnchor]) -> None: ...


class NullPresenter:
    """Presenter that renders nothing; useful for headless sessions."""

    def highlight(self, side: Side, index: int) -> None:
        pass

    def scroll_to(self, side: Side, index: int) -> None:
        pass

    def show_pending(self, pending: Optional[PendingAnchor]) -> None:
        pass


class ConsolePresenter:
    """Presenter that prints highlights and scrolls to a rich console."""

    def __init__(self, console: Optional[Console] = None, work_a: Optional[ExtractedWork] = None, work_b: Optional[ExtractedWork] = None):
        self.console = console or Console()
        self.works = {Side.A: work_a, Side.B: work_b}

    def _preview(self, side: Side, index: int, width: int = 60) -> str:
        work = self.works.get(side)
        if work is None or not 0 <= index < len(work.blocks):
            return ""
        text = work.blocks[index].text.replace("\n", " ")
        return escape((text[: width - 1] + "…") if len(text) > width else text)

    def highlight(self, side: Side, index: int) -> None:
        colour = "cyan" if side is Side.A else "magenta"
        self.console.print(f"[{colour}]{side.value.upper()}:¶{index + 1}[/{colour}] {self._preview(side, index)}")

    def scroll_to(self, side: Side, index: int) -> None:
        self.console.print(f"[dim]scroll {side.value.upper()} -> ¶{index + 1}[/dim]")

    def show_pending(self, pending: Optional[PendingAnchor]) -> None:
        if pending is None:
            return
        self.console.print(
            f"[yellow]Selected {pending.side.value.upper()}:¶{pending.index + 1} "
            f"- now select a paragraph in the other panel[/yellow]"
        )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def proportional_scroll(
    scroll_top: float,
    scroll_height: float,
    client_height: float,
    target_scroll_height: float,
    target_client_height: float,
) -> float:
    """Map a scroll offset to the same relative offset in the other panel."""
    scrollable = scroll_height - client_height
    ratio = scroll_top / scrollable if scrollable > 0 else 0.0
    return ratio * (target_scroll_height - target_client_height)


def closest_block(centers: Sequence[float], viewport_center: float) -> int:
    """Index of the block whose centre is nearest the viewport centre.

    The first block wins ties; an empty panel yields 0.
    """
    closest_index = 0
    closest_distance = float("inf")
    for index, center in enumerate(centers):
        distance = abs(center - viewport_center)
        if distance < closest_distance:
            closest_distance = distance
            closest_index = index
    return closest_index


# =============================================================================
# SESSION
# =============================================================================

class ReaderSession:
    """Two-panel reading session over a pair of extracted works."""

    def __init__(
        self,
        work_a: ExtractedWork,
        work_b: ExtractedWork,
        config: Optional[ReaderSessionConfig] = None,
        presenter: Optional[Presenter] = None,
    ):
        self.work_a = work_a
        self.work_b = work_b
        self.config = config or ReaderSessionConfig()
        self.presenter: Presenter = presenter or NullPresenter()
        self.engine = AlignmentEngine(len(work_a.blocks), len(work_b.blocks))
        self.pending: Optional[PendingAnchor] = None

    @classmethod
    def from_lengths(cls, len_a: int, len_b: int, **kwargs) -> "ReaderSession":
        """Session over placeholder blocks; handy when only counts are known."""
        work_a = ExtractedWork(title=None, blocks=[Block(index=i, text="") for i in range(len_a)])
        work_b = ExtractedWork(title=None, blocks=[Block(index=i, text="") for i in range(len_b)])
        return cls(work_a, work_b, **kwargs)

    def work_for(self, side: Side) -> ExtractedWork:
        return self.work_a if side is Side.A else self.work_b

    # ---- navigation -------------------------------------------------------

    def navigate_to_counterpart(self, side: "Side | str", index: int) -> Tuple[Side, int]:
        """Highlight ``index`` and its counterpart, scrolling the counterpart into view."""
        side = Side.parse(side)
        target_index = self.engine.map_index(side, index)
        target_side = side.other
        self.presenter.highlight(side, index)
        self.presenter.highlight(target_side, target_index)
        self.presenter.scroll_to(target_side, target_index)
        return target_side, target_index

    def handle_block_click(self, side: "Side | str", index: int, shift: bool = False) -> Union[Tuple[Side, int], Anchor, None]:
        """Navigate to the counterpart, or take part in anchor selection.

        Shift-click (or any click while an anchor is pending) selects for an
        anchor: the result is the completed ``Anchor``, or None while the
        selection is still pending. A plain click returns (side, index).
        """
        if shift or self.pending is not None:
            return self.select_for_anchor(side, index)
        return self.navigate_to_counterpart(side, index)

    def jump_to_anchor(self, position: int) -> Optional[Anchor]:
        anchors = self.engine.anchors
        if position < 0 or position >= len(anchors):
            return None
        anchor = anchors[position]
        self.presenter.scroll_to(Side.A, anchor.index_a)
        self.presenter.scroll_to(Side.B, anchor.index_b)
        self.presenter.highlight(Side.A, anchor.index_a)
        self.presenter.highlight(Side.B, anchor.index_b)
        return anchor

    def sync_scroll(
        self,
        side: "Side | str",
        scroll_top: float,
        scroll_height: float,
        client_height: float,
        target_scroll_height: float,
        target_client_height: float,
    ) -> Optional[float]:
        """Scroll offset for the other panel, or None when sync is off."""
        if self.config.sync_mode == "off":
            return None
        return proportional_scroll(scroll_top, scroll_height, client_height, target_scroll_height, target_client_height)

    def update_active_highlight(self, side: "Side | str", centers: Sequence[float], viewport_center: float) -> Optional[Tuple[int, int]]:
        """Highlight the block nearest the viewport centre and its mapped counterpart.

        ``centers`` holds one vertical centre per block of ``side``, in block order.
        """
        side = Side.parse(side)
        if len(centers) != self.engine.length_of(side):
            raise ValueError(
                f"Got {len(centers)} block centre(s) for side {side.value.upper()}, "
                f"expected {self.engine.length_of(side)}"
            )
        if self.engine.length_of(side) == 0 or self.engine.length_of(side.other) == 0:
            return None
        index = closest_block(centers, viewport_center)
        target_index = self.engine.map_index(side, index)
        self.presenter.highlight(side, index)
        self.presenter.highlight(side.other, target_index)
        return index, target_index

    # ---- anchors ----------------------------------------------------------

    def select_for_anchor(self, side: "Side | str", index: int) -> Optional[Anchor]:
        """Record one half of an anchor, or complete it from the pending half."""
        side = Side.parse(side)
        index = as_index(index, "index", InvalidAnchor)
        length = self.engine.length_of(side)
        if not 0 <= index < length:
            raise InvalidAnchor(f"Cannot select {side.value.upper()}:{index}, outside [0, {length})")

        if self.pending is None or self.pending.side is side:
            self.pending = PendingAnchor(side, index)
            self.presenter.show_pending(self.pending)
            self.presenter.highlight(side, index)
            return None

        if self.pending.side is Side.A:
            index_a, index_b = self.pending.index, index
        else:
            index_a, index_b = index, self.pending.index
        self.pending = None
        self.presenter.show_pending(None)
        self.engine.add_anchor(index_a, index_b)
        logger.info("Anchor A:%d <-> B:%d (%d total)", index_a, index_b, self.engine.anchor_count())
        return Anchor(index_a, index_b)

    def cancel_pending(self) -> None:
        self.pending = None
        self.presenter.show_pending(None)

    def add_anchor(self, index_a: int, index_b: int) -> bool:
        return self.engine.add_anchor(index_a, index_b)

    def remove_anchor_at(self, position: int) -> bool:
        return self.engine.remove_anchor_at(position)

    def clear_anchors(self) -> None:
        self.engine.clear_anchors()
        self.cancel_pending()

    def status_text(self) -> str:
        return format_status(self.engine.anchor_count())

    def block_preview(self, side: "Side | str", index: int, width: int = 30) -> str:
        """First ``width`` characters of a block, or "" for an index outside the work."""
        blocks = self.work_for(Side.parse(side)).blocks
        if not 0 <= index < len(blocks):
            return ""
        return blocks[index].text[:width]

    def anchor_previews(self, width: int = 30) -> List[dict]:
        """Rows for an anchor list: 1-based labels plus short text previews."""
        rows = []
        for position, anchor in enumerate(self.engine.anchors):
            rows.append({
                "position": position,
                "label": f"Anchor {position + 1}",
                "a": f"A:¶{anchor.index_a + 1}",
                "b": f"B:¶{anchor.index_b + 1}",
                "preview_a": self.block_preview(Side.A, anchor.index_a, width),
                "preview_b": self.block_preview(Side.B, anchor.index_b, width),
            })
        return rows

    # ---- layout -----------------------------------------------------------

    def toggle_layout(self) -> str:
        self.config.layout = "vertical" if self.config.layout == "horizontal" else "horizontal"
        return self.config.layout

    def swap_panels(self) -> bool:
        self.config.swapped = not self.config.swapped
        return self.config.swapped

    def set_sync_mode(self, mode: str) -> None:
        if mode not in SYNC_MODES:
            raise ValueError(f"Unknown sync mode: {mode!r} (expected one of {SYNC_MODES})")
        self.config.sync_mode = mode
