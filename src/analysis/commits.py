"""
Commit timestamp statistics for one repository.

consistency_score: distinct commit days relative to the day span between the first and
last commit, x1000, capped at 100 (so roughly one active day in ten already reads as
fully consistent). A zero span scores 0.
batch_commit_dates: days with >= batch_min commits, i.e. "built in one sitting".
The this-year / last-month counters are anchored at `now` and are the only part that
changes with the calendar.
"""
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable

from src.schemas.entities import CommitPattern

BATCH_MIN_COMMITS = 5


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_timestamp(raw: str) -> datetime | None:
    """GitHub ISO-8601 ('2024-01-01T10:00:00Z') -> aware datetime; None when unparsable."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        return _as_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


def consistency_score(timestamps: Iterable[datetime]) -> int:
    days = {_as_utc(t).date() for t in timestamps}
    if not days:
        return 0
    span = (max(days) - min(days)).days
    if span <= 0:
        return 0
    return min(100, round(len(days) / span * 1000))


def analyze_commits(timestamps: Iterable[datetime], now: datetime | None = None,
                    batch_min: int = BATCH_MIN_COMMITS) -> CommitPattern:
    ts = [_as_utc(t) for t in timestamps]
    if not ts:
        return CommitPattern()
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    year_ago = now - timedelta(days=365)
    month_ago = now - timedelta(days=30)

    per_day = Counter(t.date() for t in ts)
    return CommitPattern(
        total_commits=len(ts),
        commits_this_year=sum(1 for t in ts if t > year_ago),
        commits_last_month=sum(1 for t in ts if t > month_ago),
        consistency_score=consistency_score(ts),
        batch_commit_dates=sorted(d for d, n in per_day.items() if n >= batch_min),
    )
