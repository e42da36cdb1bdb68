from datetime import datetime, timezone
from typing import Optional


def as_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    # Columns are DateTime without time zone and hold UTC
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


def not_null(v, label: str):
    if v is None:
        raise ValueError(f"{label} cannot be null")
    return v
