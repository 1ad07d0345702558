"""Case-insensitive header and metadata mapping."""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping, Tuple, Union

HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

METADATA_PREFIX = "m-"


class HeaderMap(Mapping[str, str]):
    """Immutable mapping whose keys compare case-insensitively.

    The original spelling of each key is preserved for iteration.
    """

    __slots__ = ("_items",)

    def __init__(self, source: HeaderSource | None = None) -> None:
        self._items: dict[str, tuple[str, str]] = {}
        if source is None:
            return
        pairs = source.items() if isinstance(source, Mapping) else source
        for key, value in pairs:
            self._items[key.lower()] = (key, str(value))

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"

    def merged(self, other: HeaderSource) -> "HeaderMap":
        """Return a copy with ``other`` layered on top."""
        result = HeaderMap(self.items())
        extra = HeaderMap(other)
        result._items.update(extra._items)
        return result

    def metadata(self) -> "HeaderMap":
        """Return only the user metadata (``m-*``) entries."""
        return HeaderMap(
            (key, value)
            for key, value in self.items()
            if key.lower().startswith(METADATA_PREFIX)
        )
