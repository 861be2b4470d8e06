"""Converters between stored values and API representations."""

from datetime import datetime
from typing import Optional

import pytz

from models.assignment_file import AssignmentFileModel
from schemas.assignment import FileInfo

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from storage.

    SQLite drops tzinfo on the way out even for ``DateTime(timezone=True)``
    columns; everything the service writes is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def file_to_info(model: AssignmentFileModel) -> FileInfo:
    return FileInfo(
        id=model.id,
        file_name=model.file_name,
        content_type=model.content_type or DEFAULT_CONTENT_TYPE,
        file_type=model.file_type,
    )
