"""Streaming directory listing parser."""

from __future__ import annotations

from functools import partial

from manta_client.domain.entities.object_metadata import (
    DIRECTORY_CONTENT_TYPE,
    ObjectMetadata,
    is_directory_content_type,
)
from manta_client.domain.exceptions import NotADirectoryError
from manta_client.domain.services.record_stream import RecordStream, ResponseBody, decode_json_line
from manta_client.domain.value_objects.paths import normalize_path


class StreamingListingParser:
    """Turns a directory listing body into a lazy stream of ObjectMetadata.

    Any malformed line fails the whole stream with DecodeError: a partial
    listing is not something a caller iterating a directory can rely on.
    """

    directory_content_type = DIRECTORY_CONTENT_TYPE

    def is_directory(self, response: ResponseBody) -> bool:
        """Check whether a response is a directory listing."""
        return is_directory_content_type(response.headers.get("content-type"))

    def parse(self, directory: str, response: ResponseBody) -> RecordStream[ObjectMetadata]:
        """Parse a listing response.

        Args:
            directory: Path that was listed.
            response: Open response for ``directory``; owned by the stream.

        Returns:
            Lazy stream of entries with fully qualified paths.

        Raises:
            NotADirectoryError: If the response is not a directory listing.
                Raised before any record is read; the response is released.
        """
        if not self.is_directory(response):
            content_type = response.headers.get("content-type")
            response.close()
            raise NotADirectoryError(
                f"Path is not a directory: {directory} (content-type: {content_type})"
            )

        return RecordStream(response, partial(self._decode, normalize_path(directory)))

    @staticmethod
    def _decode(directory: str, line: str) -> ObjectMetadata:
        return ObjectMetadata.from_listing_record(directory, decode_json_line(line))
