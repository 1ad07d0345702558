"""Domain value objects."""

from manta_client.domain.value_objects.headers import HeaderMap, METADATA_PREFIX
from manta_client.domain.value_objects.identifiers import JobId, parse_job_id
from manta_client.domain.value_objects.paths import (
    ROOT,
    ObjectPath,
    format_path,
    home_directory,
    join_path,
    last_item_in_path,
    normalize_path,
    parent_paths,
)

__all__ = [
    "HeaderMap",
    "METADATA_PREFIX",
    "JobId",
    "parse_job_id",
    "ROOT",
    "ObjectPath",
    "format_path",
    "home_directory",
    "join_path",
    "last_item_in_path",
    "normalize_path",
    "parent_paths",
]
