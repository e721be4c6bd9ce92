from datetime import timezone

from sqlalchemy import types

from ..utils import to_utc


class UTCDateTime(types.TypeDecorator):
    """Timestamp stored as UTC without an offset and loaded back as aware UTC.

    SQLite has no timezone-aware column type, so the offset is normalised
    away on write and reattached on read.
    """

    impl = types.DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return to_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return value.replace(tzinfo=timezone.utc)
