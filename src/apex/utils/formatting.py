"""Display formatting for dates, durations and names."""

from datetime import date, datetime, timedelta

from ..core.models import parse_datetime

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_duration(
    start: datetime | str,
    end: datetime | str | None,
    in_progress_label: str = "In progress",
) -> str:
    """
    Format elapsed time as ``H:MM:SS``, or ``M:SS`` under an hour.

    Args:
        start: Ride start
        end: Ride end, None while the ride is still going
        in_progress_label: Returned when ``end`` is None
    """
    if end is None or end == "":
        return in_progress_label

    seconds = max(0, int((parse_datetime(end) - parse_datetime(start)).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_short_date(
    value: date | datetime | str,
    include_year: bool = True,
    use_relative: bool = False,
    today: date | None = None,
) -> str:
    """``Jan 5, 2025`` style, or ``Today``/``Yesterday`` when relative."""
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        day = parse_datetime(value).date()

    if use_relative:
        today = today or date.today()
        if day == today:
            return "Today"
        if day == today - timedelta(days=1):
            return "Yesterday"

    text = f"{_MONTHS[day.month - 1]} {day.day}"
    if include_year:
        text += f", {day.year}"
    return text


def to_title_case(text: str | None) -> str:
    """
    Capitalise each word, including each part of hyphenated words.

    ``"mt-07 tracer"`` becomes ``"Mt-07 Tracer"``.
    """
    if not text:
        return ""

    def cap(part: str) -> str:
        return part[:1].upper() + part[1:]

    words = []
    for word in text.lower().split():
        if "-" in word:
            words.append("-".join(cap(p) for p in word.split("-")))
        else:
            words.append(cap(word))
    return " ".join(words)


def format_km(value: float, decimals: int = 1) -> str:
    return f"{value:,.{decimals}f} km"
