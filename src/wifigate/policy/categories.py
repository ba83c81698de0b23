"""
Category keyword table.

Maps a category tag (e.g. "P2P") to the keywords that identify it in a
resource locator. Matching is a case-insensitive substring test; this is a
stand-in for a content classification service, not a classifier.

The table is built once (defaults plus the access config's ``categories``
section) and is read-only afterwards.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

DEFAULT_CATEGORIES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "P2P": ("torrent", "bittorrent", "utorrent", "peer", "magnet:"),
    }
)


class CategoryTable:
    """
    Read-only tag -> keywords lookup.

    Entries passed in replace the default keywords for the same tag.

    Usage:
        table = CategoryTable({"STREAMING": ["netflix", "twitch"]})
        table.match("https://www.netflix.com/title/1", ["P2P", "STREAMING"])
        # -> ("STREAMING", "netflix")
    """

    def __init__(
        self,
        entries: Mapping[str, Iterable[str]] | None = None,
        include_defaults: bool = True,
    ) -> None:
        table: dict[str, tuple[str, ...]] = {}
        if include_defaults:
            table.update(DEFAULT_CATEGORIES)
        for tag, keywords in (entries or {}).items():
            normalized = tuple(
                kw.strip().lower() for kw in keywords if kw and kw.strip()
            )
            table[tag.strip().upper()] = normalized
        self._table = MappingProxyType(table)

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._table)

    def keywords(self, tag: str) -> tuple[str, ...]:
        """Keywords for a tag; empty when the tag is unknown."""
        return self._table.get(tag.upper(), ())

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.upper() in self._table

    def __len__(self) -> int:
        return len(self._table)

    def match(
        self,
        resource_ref: str,
        categories: Iterable[str],
    ) -> tuple[str, str] | None:
        """
        Find the first of ``categories`` whose keywords occur in the locator.

        Categories are tried in the order given.

        Returns:
            (category, keyword) for the first hit, or None
        """
        haystack = resource_ref.lower()
        for tag in categories:
            for keyword in self.keywords(tag):
                if keyword in haystack:
                    return tag.upper(), keyword
        return None
