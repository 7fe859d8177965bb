"""Physical locations of catalog targets.

A location is a kind tag plus an ordered ``str -> str`` property mapping.
The tag is persisted alongside the properties and selects the class used to
rebuild the location on read; unknown tags come back as a plain
``Location`` that keeps its tag, so no data is lost.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import ClassVar


class Location:
    """Generic property bag describing where a target physically resides."""

    kind: ClassVar[str] = "default"

    def __init__(self, properties: Mapping[str, str] | None = None, *, kind: str | None = None) -> None:
        self._kind = kind or type(self).kind
        self._properties: dict[str, str] = {}
        for key, value in (properties or {}).items():
            self._properties[str(key)] = str(value)

    @property
    def kind_tag(self) -> str:
        return self._kind

    @property
    def properties(self) -> dict[str, str]:
        """Copy of the property mapping, in insertion order."""
        return dict(self._properties)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._properties.get(key, default)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self._kind == other._kind and self._properties == other._properties

    def __hash__(self) -> int:
        return hash((self._kind, tuple(self._properties.items())))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self._kind!r}, properties={self._properties!r})"


class DefaultLocation(Location):
    """Location without a dedicated structure."""


class FileLocation(Location):
    """A target stored in (or as) a single file."""

    kind: ClassVar[str] = "file"
    PATH = "path"

    @classmethod
    def at(cls, path: str) -> FileLocation:
        return cls({cls.PATH: path})

    @property
    def path(self) -> str | None:
        return self.get(self.PATH)


class CsvFileLocation(FileLocation):
    """A table stored as a delimited text file."""

    kind: ClassVar[str] = "csv"
    DELIMITER = "delimiter"
    QUOTE_CHAR = "quote_char"
    HAS_HEADER = "has_header"

    @classmethod
    def at(
        cls,
        path: str,
        delimiter: str = ",",
        quote_char: str = '"',
        has_header: bool = True,
    ) -> CsvFileLocation:
        return cls(
            {
                cls.PATH: path,
                cls.DELIMITER: delimiter,
                cls.QUOTE_CHAR: quote_char,
                cls.HAS_HEADER: "true" if has_header else "false",
            }
        )

    @property
    def delimiter(self) -> str:
        return self.get(self.DELIMITER, ",") or ","

    @property
    def has_header(self) -> bool:
        return self.get(self.HAS_HEADER, "true") == "true"


LOCATION_KINDS: dict[str, type[Location]] = {
    cls.kind: cls for cls in (DefaultLocation, FileLocation, CsvFileLocation)
}


def register_location_kind(cls: type[Location]) -> type[Location]:
    """Register a Location subclass so it is rebuilt by its tag on read."""
    LOCATION_KINDS[cls.kind] = cls
    return cls


def restore_location(kind: str, properties: Mapping[str, str]) -> Location:
    """Rebuild a location from its persisted tag and properties."""
    cls = LOCATION_KINDS.get(kind)
    if cls is None:
        return Location(properties, kind=kind)
    return cls(properties)
