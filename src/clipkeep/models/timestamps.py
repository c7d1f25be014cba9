from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator


def as_local_naive(value: datetime) -> datetime:
    """Stored dates are naive local time; aware values are converted on the way in."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# pydantic parses "...Z", "+02:00" and epoch numbers into aware datetimes
LocalDateTime = Annotated[datetime, AfterValidator(as_local_naive)]
