"""AO3 work parser: turns a work page into an ordered block sequence.

This module focuses on extracting blocks from already-fetched HTML,
independent of how the page was obtained. A small loader is provided for
convenience that accepts either a URL or a local file path.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

import chardet  # type: ignore
from bs4 import BeautifulSoup, Tag

from ..util.types import Block, ExtractedWork


BLOCK_TAGS = ["p", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6", "hr"]

# Screen-reader landmarks AO3 puts inside the work body
LANDMARK_HEADINGS = {"chapter text", "notes:", "summary:", "chapter notes"}

_punct_re = re.compile(r"[.,?!…;:]")
_heading_re = re.compile(r"^h[1-6]$")


def block_type_for(tag_name: str) -> str:
	"""Classify an element name as break, quote, heading or paragraph."""
	tag = tag_name.lower()
	if tag == "hr":
		return "break"
	if tag == "blockquote":
		return "quote"
	if _heading_re.match(tag):
		return "heading"
	return "paragraph"


def _text_of(el: Optional[Tag]) -> Optional[str]:
	if el is None:
		return None
	return el.get_text().strip()


def _extract_title(soup: BeautifulSoup) -> Optional[str]:
	"""Return '<work title> - <chapter title>' when both are present."""
	title = _text_of(soup.select_one(".title.heading") or soup.select_one("h2.title"))
	chapter_title = _text_of(soup.select_one(".chapter.preface.group h3.title"))
	if title and chapter_title:
		return f"{title} - {chapter_title}"
	return title or chapter_title


def _is_inside_preface(el: Tag) -> bool:
	"""True if ``el`` or one of its ancestors carries the preface class."""
	for node in [el, *el.parents]:
		if "preface" in (node.get("class") or []):
			return True
	return False


def _find_content_container(soup: BeautifulSoup) -> Optional[Tag]:
	"""Locate the story body, trying multi-chapter then single-chapter layouts."""
	chapter_article = soup.select_one('.chapter[role="article"]')
	if chapter_article is not None:
		container = chapter_article.select_one(".userstuff")
		if container is not None:
			return container

	chapters_div = soup.select_one("#chapters")
	if chapters_div is not None:
		for us in chapters_div.select(".userstuff"):
			if not _is_inside_preface(us):
				return us

	return soup.select_one(".userstuff.module") or soup.select_one(".userstuff")


def extract_ao3_content(html: str) -> ExtractedWork:
	"""Extract the title and block sequence from an AO3 work page.

	- Blocks are p, blockquote, h1-h6 and hr elements in document order
	- Empty elements are skipped, except hr which becomes a "break" block
	- AO3 landmark headings (e.g. "Chapter Text") are skipped
	- Block indices are assigned after filtering, so they are contiguous
	"""
	soup = BeautifulSoup(html, "html.parser")
	title = _extract_title(soup)

	container = _find_content_container(soup)
	if container is None:
		raise ValueError("Could not find story content. Is this a valid AO3 work?")

	blocks: List[Block] = []
	for el in container.find_all(BLOCK_TAGS):
		text = el.get_text().strip()
		if not text and el.name != "hr":
			continue
		if _heading_re.match(el.name) and text.lower() in LANDMARK_HEADINGS:
			continue
		blocks.append(Block(
			index=len(blocks),
			text=text,
			html=el.decode_contents(),
			char_count=len(text),
			punct_count=len(_punct_re.findall(text)),
			block_type=block_type_for(el.name),
		))

	return ExtractedWork(title=title, blocks=blocks)


def decode_html_bytes(data: bytes) -> str:
	"""Decode page bytes, trusting UTF-8 first and chardet otherwise."""
	if data.startswith(b"\xef\xbb\xbf"):
		data = data[3:]
	try:
		return data.decode("utf-8")
	except UnicodeDecodeError:
		detected = chardet.detect(data)
		encoding = detected.get("encoding") or "latin-1"
		try:
			return data.decode(encoding, errors="replace")
		except LookupError:
			return data.decode("latin-1", errors="replace")


def load_work_source(source: str) -> ExtractedWork:
	"""Load a work from an AO3 URL or a saved HTML file and extract its blocks."""
	if source.startswith("http://") or source.startswith("https://"):
		from ..fetchers.ao3_fetcher import fetch_work_html
		html = fetch_work_html(source)
	else:
		p = Path(source)
		if not p.is_file():
			raise FileNotFoundError(f"HTML file not found: {source}")
		html = decode_html_bytes(p.read_bytes())
	return extract_ao3_content(html)
