"""Object metadata entity."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from manta_client.domain.exceptions import DecodeError
from manta_client.domain.value_objects.headers import HeaderMap
from manta_client.domain.value_objects.paths import ObjectPath, join_path, normalize_path
from manta_client.domain.value_objects.timestamps import parse_http_date, parse_iso_timestamp

# Content-type of a directory's listing body
DIRECTORY_CONTENT_TYPE = "application/x-json-stream; type=directory"
# Content-type sent when creating a directory
DIRECTORY_REQUEST_CONTENT_TYPE = "application/json; type=directory"
LINK_CONTENT_TYPE = "application/json; type=link"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ObjectKind(Enum):
    """Kind of storage node."""
    OBJECT = "object"
    DIRECTORY = "directory"
    LINK = "link"


def is_directory_content_type(content_type: Optional[str]) -> bool:
    """Check a content-type against the directory content-type."""
    if not content_type:
        return False
    normalized = ";".join(part.strip() for part in content_type.lower().split(";"))
    return normalized == ";".join(
        part.strip() for part in DIRECTORY_CONTENT_TYPE.split(";")
    )


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata describing a single object, directory or link."""

    path: ObjectPath
    kind: ObjectKind = ObjectKind.OBJECT
    size: Optional[int] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    durability: Optional[int] = None
    metadata: HeaderMap = field(default_factory=HeaderMap)

    @property
    def is_directory(self) -> bool:
        return self.kind is ObjectKind.DIRECTORY

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def with_path(self, path: str) -> "ObjectMetadata":
        """Return a copy of this metadata pointing at another path."""
        return replace(self, path=normalize_path(path))

    @classmethod
    def from_headers(cls, path: str, headers: Mapping[str, str]) -> "ObjectMetadata":
        """Build metadata from the headers of a HEAD/GET/PUT response.

        Args:
            path: Path the request was made against.
            headers: Response headers (case-insensitive lookup).

        Returns:
            Metadata for the object at ``path``.
        """
        headers = headers if isinstance(headers, HeaderMap) else HeaderMap(headers)
        content_type = headers.get("content-type")
        kind = ObjectKind.DIRECTORY if is_directory_content_type(content_type) else ObjectKind.OBJECT

        return cls(
            path=normalize_path(path),
            kind=kind,
            size=_optional_int(headers.get("content-length")),
            content_type=content_type,
            etag=headers.get("etag"),
            last_modified=parse_http_date(headers.get("last-modified")),
            durability=_optional_int(headers.get("durability-level")),
            metadata=headers.metadata(),
        )

    @classmethod
    def from_listing_record(cls, directory: str, record: Mapping[str, Any]) -> "ObjectMetadata":
        """Build metadata from one decoded listing line.

        The service only returns the leaf name, so the path is qualified
        with the directory that was listed.

        Raises:
            DecodeError: If the record has no usable name, type or timestamp.
        """
        name = record.get("name")
        if not isinstance(name, str) or not name:
            raise DecodeError(f"Listing record has no name: {record!r}")

        try:
            kind = ObjectKind(record.get("type", ObjectKind.OBJECT.value))
        except ValueError as exc:
            raise DecodeError(f"Unknown listing record type: {record.get('type')!r}") from exc

        try:
            last_modified = parse_iso_timestamp(record.get("mtime"))
            size = _optional_int(record.get("size"))
            durability = _optional_int(record.get("durability"))
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Malformed listing record: {record!r}") from exc

        content_type = record.get("contentType")
        if kind is ObjectKind.DIRECTORY:
            content_type = DIRECTORY_CONTENT_TYPE
        elif kind is ObjectKind.LINK and content_type is None:
            content_type = LINK_CONTENT_TYPE

        return cls(
            path=join_path(directory, name),
            kind=kind,
            size=size,
            content_type=content_type,
            etag=record.get("etag"),
            last_modified=last_modified,
            durability=durability,
        )


def _optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)
