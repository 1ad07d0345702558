"""Job identifiers."""

from __future__ import annotations

import uuid
from typing import Optional

JobId = uuid.UUID


def parse_job_id(value: object) -> Optional[JobId]:
    """Parse a job identifier, returning None for anything that is not a UUID.

    Args:
        value: Raw identifier, usually the ``name`` field of a job index line.

    Returns:
        The UUID, or None if the value is absent or malformed.
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None
