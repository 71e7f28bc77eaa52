from __future__ import annotations

from datetime import timezone

from sqlalchemy.types import DateTime, TypeDecorator

from shopsync.time_utils import to_utc_naive


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that is written as UTC and always read back naive.

    Services compare against the naive-UTC `utcnow()`; backends with a real
    timestamptz return aware values, which are normalised on load.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        return to_utc_naive(value)
