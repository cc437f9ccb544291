from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time; used for column defaults and approval stamps."""
    return datetime.now(timezone.utc)
