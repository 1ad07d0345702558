"""Domain services."""

from manta_client.domain.services.listing_parser import StreamingListingParser
from manta_client.domain.services.record_stream import (
    RecordStream,
    decode_json_line,
    decode_text_line,
)

__all__ = [
    "StreamingListingParser",
    "RecordStream",
    "decode_json_line",
    "decode_text_line",
]
