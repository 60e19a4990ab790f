"""Hierarchical blob paths."""

from typing import Iterable, Iterator, List, Tuple


class BlobPath:
    """
    Immutable ordered sequence of path segments.

    Segment order is the hierarchy order. Segments are not validated here;
    what counts as a legal segment depends on the backend that composes it.
    """

    __slots__ = ("_segments",)

    def __init__(self, segments: Iterable[str] = ()):
        object.__setattr__(self, "_segments", tuple(segments))

    @classmethod
    def clean_path(cls) -> "BlobPath":
        """Return the empty (root) path."""
        return cls()

    def add(self, segment: str) -> "BlobPath":
        """
        Return a new path with ``segment`` appended.

        Args:
            segment: Path segment to append

        Returns:
            New BlobPath; the receiver is left unchanged
        """
        return BlobPath(self._segments + (segment,))

    append = add

    def segments(self) -> Tuple[str, ...]:
        return self._segments

    def to_list(self) -> List[str]:
        return list(self._segments)

    def build_as_string(self, separator: str = "/") -> str:
        """Join segments with ``separator``, keeping a trailing separator."""
        return "".join(segment + separator for segment in self._segments)

    def __setattr__(self, name, value):
        raise AttributeError("BlobPath is immutable")

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BlobPath):
            return NotImplemented
        return self._segments == other._segments

    def __hash__(self) -> int:
        return hash(self._segments)

    def __str__(self) -> str:
        return "".join(f"[{segment}]" for segment in self._segments)

    def __repr__(self) -> str:
        return f"BlobPath({list(self._segments)!r})"
