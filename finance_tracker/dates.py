"""Calendar helpers shared by the recurring engine and the store.

Dates are stored as plain ``YYYY-MM-DD`` strings with no time-of-day or
timezone. Reference instants are truncated to the local calendar date
before any comparison.
"""

from datetime import date, datetime, time
from typing import Union

from dateutil import tz
from dateutil.relativedelta import relativedelta

DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime]

# Fixed offsets, not calendar months/years. A monthly rule anchored on the
# 31st drifts through shorter months and yearly rules ignore leap days.
# Existing rules depend on these exact dates.
FREQUENCY_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "monthly": relativedelta(days=30),
    "yearly": relativedelta(days=365),
}


def advance(d: date, frequency: str) -> date:
    """Return the next occurrence after ``d`` for the given frequency."""
    try:
        step = FREQUENCY_STEPS[frequency]
    except (KeyError, TypeError):
        raise ValueError(f"Unknown frequency: {frequency!r}") from None
    return d + step


def parse_date(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, raising ValueError on anything else."""
    if not isinstance(text, str):
        raise ValueError(f"Expected a YYYY-MM-DD string, got {text!r}")
    return datetime.strptime(text.strip(), DATE_FORMAT).date()


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def local_date(reference: DateLike) -> date:
    """Truncate an instant to the local calendar date.

    Aware datetimes are converted to the local zone first; naive ones are
    already taken as local time.
    """
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            reference = reference.astimezone(tz.tzlocal())
        return reference.date()
    if isinstance(reference, date):
        return reference
    raise TypeError(f"Expected a date or datetime, got {type(reference).__name__}")


def is_strictly_before(d: DateLike, reference: DateLike) -> bool:
    return local_date(d) < local_date(reference)


def is_same_day(d: DateLike, reference: DateLike) -> bool:
    return local_date(d) == local_date(reference)


def epoch_millis(reference: DateLike) -> int:
    if not isinstance(reference, datetime):
        reference = datetime.combine(reference, time())
    return int(reference.timestamp() * 1000)


def now() -> datetime:
    return datetime.now(tz.tzlocal())
