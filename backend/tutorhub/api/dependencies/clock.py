"""Reference instant for a request."""

from datetime import datetime, timezone


def get_clock() -> datetime:
    """
    Current UTC instant. The only place the API reads the system clock;
    services receive it as an argument.
    """
    return datetime.now(timezone.utc)
