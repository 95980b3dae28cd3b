"""Anchor-driven alignment engine for two block sequences.

This module implements the piecewise-proportional index mapping between
sequence A and sequence B:
- Anchors pin exact correspondences (index_a, index_b)
- Anchors split both sequences into segments
- Each segment is interpolated independently by relative offset

The mapping is recomputed in full on every anchor mutation. Neither the
anchor set nor the engine is safe for concurrent mutation without external
synchronization.
"""

from __future__ import annotations

import logging
import operator
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from aligntext.util.types import Anchor, AlignmentMapping, AlignmentMode, Segment, Side


logger = logging.getLogger(__name__)


class AlignmentError(Exception):
    """Base class for alignment engine errors."""


class InvalidAnchor(AlignmentError, ValueError):
    """Anchor indices are negative or outside their sequence."""


class OutOfRange(AlignmentError, IndexError):
    """Lookup index is outside the source sequence."""


AnchorLike = Union[Anchor, Tuple[int, int]]


# =============================================================================
# HELPER FUNCTIONS (Core algorithms)
# =============================================================================

def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round to the nearest integer, ties towards +infinity (2.5 -> 3, -2.5 -> -2)."""
    return np.floor(values + 0.5).astype(np.int64)


def _as_anchor(anchor: AnchorLike) -> Anchor:
    if isinstance(anchor, Anchor):
        return anchor
    index_a, index_b = anchor
    return Anchor(int(index_a), int(index_b))


def as_index(value: object, name: str, error: type) -> int:
    """Coerce an integral value (int or numpy integer) to int; bools and floats are rejected."""
    if isinstance(value, bool):
        raise error(f"{name}={value!r} is not an integer index")
    try:
        return operator.index(value)  # type: ignore[arg-type]
    except TypeError:
        raise error(f"{name}={value!r} is not an integer index") from None


def build_segments(len_a: int, len_b: int, anchors: Iterable[AnchorLike]) -> List[Segment]:
    """Split both sequences into segments bounded by anchors or sequence edges.

    Anchors are sorted by index_a here. A segment ending at an anchor is only
    emitted when the anchor moves past the previous boundary on either side;
    the trailing segment is always emitted, even as a single point.
    """
    sorted_anchors = sorted((_as_anchor(a) for a in anchors), key=lambda a: a.index_a)

    segments: List[Segment] = []
    prev_a = 0
    prev_b = 0
    for anchor in sorted_anchors:
        if anchor.index_a > prev_a or anchor.index_b > prev_b:
            segments.append(Segment(prev_a, anchor.index_a, prev_b, anchor.index_b))
        prev_a = anchor.index_a
        prev_b = anchor.index_b

    segments.append(Segment(prev_a, len_a - 1, prev_b, len_b - 1))
    return segments


def _interpolate(start_src: int, end_src: int, start_dst: int, end_dst: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return (source indices, destination indices) for one segment direction."""
    src = np.arange(start_src, end_src + 1, dtype=np.int64)
    seg_len_src = end_src - start_src
    seg_len_dst = end_dst - start_dst
    if seg_len_src > 0:
        ratio = (src - start_src) / seg_len_src
    else:
        ratio = np.zeros(src.shape[0], dtype=np.float64)
    dst = start_dst + round_half_up(ratio * seg_len_dst)
    return src, np.minimum(dst, end_dst)


def compute_mapping(len_a: int, len_b: int, anchors: Sequence[AnchorLike] = ()) -> AlignmentMapping:
    """Compute both index maps for the given sequence lengths and anchors.

    Pure and total: the same inputs always produce identical arrays. Anchor
    indices are assumed valid; callers validate before insertion.
    """
    anchor_list = sorted((_as_anchor(a) for a in anchors), key=lambda a: a.index_a)
    mode: AlignmentMode = "anchored" if anchor_list else "proportional"

    if len_a == 0 or len_b == 0:
        empty = np.zeros(0, dtype=np.int64)
        return AlignmentMapping(map_a_to_b=empty, map_b_to_a=empty.copy(), segments=[], mode=mode)

    segments = build_segments(len_a, len_b, anchor_list)

    map_a_to_b = np.zeros(len_a, dtype=np.int64)
    map_b_to_a = np.zeros(len_b, dtype=np.int64)

    for seg in segments:
        # Later segments overwrite shared boundary indices
        src, dst = _interpolate(seg.start_a, seg.end_a, seg.start_b, seg.end_b)
        map_a_to_b[src] = dst
        src, dst = _interpolate(seg.start_b, seg.end_b, seg.start_a, seg.end_a)
        map_b_to_a[src] = dst

    # Anchors stay exact even when they cross
    for anchor in anchor_list:
        map_a_to_b[anchor.index_a] = anchor.index_b
        map_b_to_a[anchor.index_b] = anchor.index_a

    return AlignmentMapping(map_a_to_b=map_a_to_b, map_b_to_a=map_b_to_a, segments=segments, mode=mode)


# =============================================================================
# ANCHOR SET
# =============================================================================

class AnchorSet:
    """Partial injective correspondence between A and B indices.

    Adding an anchor displaces any existing anchor that shares its index_a
    or its index_b ("last write wins"). Anchors are kept sorted by index_a.
    Every successful mutation calls ``on_change``.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._anchors: List[Anchor] = []
        self.on_change = on_change

    def __len__(self) -> int:
        return len(self._anchors)

    def __iter__(self):
        return iter(list(self._anchors))

    def __getitem__(self, position: int) -> Anchor:
        return self._anchors[position]

    def __contains__(self, anchor: object) -> bool:
        if isinstance(anchor, tuple):
            anchor = _as_anchor(anchor)  # type: ignore[arg-type]
        return anchor in self._anchors

    def snapshot(self) -> Tuple[Anchor, ...]:
        return tuple(self._anchors)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def add(self, index_a: int, index_b: int) -> bool:
        """Insert (index_a, index_b); False if the identical pair already exists."""
        new_anchor = Anchor(index_a, index_b)
        if new_anchor in self._anchors:
            return False

        displaced = [a for a in self._anchors if a.index_a == index_a or a.index_b == index_b]
        for old in displaced:
            logger.debug("Anchor %s displaced by %s", old.as_tuple(), new_anchor.as_tuple())
        self._anchors = [a for a in self._anchors if a.index_a != index_a and a.index_b != index_b]
        self._anchors.append(new_anchor)
        self._anchors.sort(key=lambda a: a.index_a)
        self._changed()
        return True

    def remove(self, position: int) -> bool:
        """Delete the anchor at ``position`` in sorted order; False if out of range."""
        if position < 0 or position >= len(self._anchors):
            return False
        del self._anchors[position]
        self._changed()
        return True

    def clear(self) -> None:
        self._anchors = []
        self._changed()

    def retain(self, keep: Callable[[Anchor], bool]) -> List[Anchor]:
        """Drop every anchor for which ``keep`` is false; return the dropped ones."""
        dropped = [a for a in self._anchors if not keep(a)]
        if dropped:
            self._anchors = [a for a in self._anchors if keep(a)]
            self._changed()
        return dropped


# =============================================================================
# ENGINE
# =============================================================================

class AlignmentEngine:
    """Owns the sequence lengths and anchor set and keeps both maps current.

    Lookups outside a sequence raise ``OutOfRange``; there is no tolerant
    default. Not safe for concurrent mutation without external locking.
    """

    def __init__(self, len_a: int = 0, len_b: int = 0):
        self._len_a = 0
        self._len_b = 0
        self._anchors = AnchorSet(on_change=self._recompute)
        self._mapping = compute_mapping(0, 0)
        self.set_lengths(len_a, len_b)

    @property
    def len_a(self) -> int:
        return self._len_a

    @property
    def len_b(self) -> int:
        return self._len_b

    @property
    def anchors(self) -> Tuple[Anchor, ...]:
        return self._anchors.snapshot()

    @property
    def mapping(self) -> AlignmentMapping:
        return self._mapping

    def length_of(self, side: Side) -> int:
        return self._len_a if side is Side.A else self._len_b

    def _recompute(self) -> None:
        self._mapping = compute_mapping(self._len_a, self._len_b, self._anchors.snapshot())
        logger.debug(
            "Recomputed %s mapping: lenA=%d lenB=%d anchors=%d segments=%d",
            self._mapping.mode, self._len_a, self._len_b,
            len(self._anchors), len(self._mapping.segments),
        )

    def set_lengths(self, len_a: int, len_b: int) -> None:
        """(Re)initialize sequence sizes, dropping anchors that no longer fit."""
        if len_a < 0 or len_b < 0:
            raise ValueError(f"Sequence lengths must be non-negative, got ({len_a}, {len_b})")
        self._len_a = int(len_a)
        self._len_b = int(len_b)
        dropped = self._anchors.retain(lambda a: a.index_a < self._len_a and a.index_b < self._len_b)
        if dropped:
            logger.warning(
                "Dropped %d anchor(s) outside new lengths (%d, %d): %s",
                len(dropped), self._len_a, self._len_b, [a.as_tuple() for a in dropped],
            )
        else:
            self._recompute()

    def validate_anchor(self, index_a: int, index_b: int) -> Tuple[int, int]:
        """Return the pair as plain ints, or raise InvalidAnchor."""
        index_a = as_index(index_a, "index_a", InvalidAnchor)
        index_b = as_index(index_b, "index_b", InvalidAnchor)
        if not 0 <= index_a < self._len_a:
            raise InvalidAnchor(f"Anchor index_a={index_a} outside [0, {self._len_a})")
        if not 0 <= index_b < self._len_b:
            raise InvalidAnchor(f"Anchor index_b={index_b} outside [0, {self._len_b})")
        return index_a, index_b

    def add_anchor(self, index_a: int, index_b: int) -> bool:
        """Insert or redefine an anchor; False if it was a duplicate no-op."""
        index_a, index_b = self.validate_anchor(index_a, index_b)
        return self._anchors.add(index_a, index_b)

    def remove_anchor_at(self, position: int) -> bool:
        return self._anchors.remove(position)

    def clear_anchors(self) -> None:
        self._anchors.clear()

    def anchor_count(self) -> int:
        return len(self._anchors)

    def current_alignment_mode(self) -> AlignmentMode:
        return self._mapping.mode

    def map_index(self, side: Union[Side, str], index: int) -> int:
        """Return the counterpart index on the other side of ``side``."""
        side = Side.parse(side)
        index = as_index(index, "index", OutOfRange)
        values = self._mapping.for_side(side)
        # An empty sequence on either side leaves both maps empty
        length = int(values.shape[0])
        if not 0 <= index < length:
            raise OutOfRange(f"Index {index} outside [0, {length}) on side {side.value.upper()}")
        return int(values[index])
