"""Shared schema types."""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def as_utc(value: datetime) -> datetime:
    """Naive values are taken as UTC; aware ones are converted to it.

    SQLite hands back naive datetimes for timezone-aware columns, so without
    this a refetched row would serialize differently from the event that
    announced it.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
