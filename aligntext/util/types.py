"""Core data types for the aligntext reader.

This module defines the fundamental data structures shared by the block
extractor, the alignment engine and the reader session.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional, Tuple

import numpy as np


AlignmentMode = Literal["proportional", "anchored"]


class Side(str, Enum):
    """One of the two panels/sequences being aligned."""
    A = "a"
    B = "b"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A

    @classmethod
    def parse(cls, value: "str | Side") -> "Side":
        if isinstance(value, Side):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown side: {value!r} (expected 'a' or 'b')")


@dataclass
class Block:
    """One content block (paragraph-equivalent) of an extracted work.

    The alignment engine only ever sees the number of blocks; everything
    below is for rendering and anchor previews.

    Attributes:
        index: Position of the block within its sequence
        text: Plain text content, stripped
        html: Inner markup as found in the source page
        char_count: Length of ``text``
        punct_count: Number of sentence punctuation marks in ``text``
        block_type: One of paragraph, quote, heading, break
    """
    index: int
    text: str
    html: str = ""
    char_count: int = 0
    punct_count: int = 0
    block_type: str = "paragraph"

    @property
    def block_id(self) -> str:
        return f"block-{self.index}"


@dataclass
class ExtractedWork:
    """A fetched work reduced to its title and ordered block sequence."""
    title: Optional[str]
    blocks: List[Block] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.blocks)


@dataclass(frozen=True, order=True)
class Anchor:
    """User-declared exact correspondence between A[index_a] and B[index_b]."""
    index_a: int
    index_b: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.index_a, self.index_b)


@dataclass(frozen=True)
class Segment:
    """Contiguous span of both sequences, inclusive bounds.

    Consecutive segments share their boundary index (an anchor position)
    in both sequences.
    """
    start_a: int
    end_a: int
    start_b: int
    end_b: int

    @property
    def len_a(self) -> int:
        return self.end_a - self.start_a

    @property
    def len_b(self) -> int:
        return self.end_b - self.start_b


@dataclass
class AlignmentMapping:
    """Both index maps derived from the sequence lengths and anchor set.

    Invariant: len(map_a_to_b) == len_a and len(map_b_to_a) == len_b
    """
    map_a_to_b: np.ndarray
    map_b_to_a: np.ndarray
    segments: List[Segment] = field(default_factory=list)
    mode: AlignmentMode = "proportional"

    @property
    def len_a(self) -> int:
        return int(self.map_a_to_b.shape[0])

    @property
    def len_b(self) -> int:
        return int(self.map_b_to_a.shape[0])

    def for_side(self, side: Side) -> np.ndarray:
        return self.map_a_to_b if side is Side.A else self.map_b_to_a

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "map_a_to_b": [int(v) for v in self.map_a_to_b],
            "map_b_to_a": [int(v) for v in self.map_b_to_a],
            "segments": [
                {"start_a": s.start_a, "end_a": s.end_a, "start_b": s.start_b, "end_b": s.end_b}
                for s in self.segments
            ],
        }


@dataclass(frozen=True)
class PendingAnchor:
    """Half-completed anchor selection awaiting a click on the other side."""
    side: Side
    index: int
