from datetime import date, datetime, timedelta, timezone

from src.analysis.commits import analyze_commits, consistency_score, parse_timestamp

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_no_commits():
    cp = analyze_commits([], now=NOW)
    assert cp.total_commits == 0
    assert cp.consistency_score == 0
    assert cp.batch_commit_dates == []


def test_zero_day_span_scores_zero_and_flags_batch():
    day = datetime(2024, 1, 1, 9, tzinfo=timezone.utc)
    ts = [day + timedelta(minutes=10 * i) for i in range(6)]
    cp = analyze_commits(ts, now=NOW)
    assert cp.consistency_score == 0
    assert cp.batch_commit_dates == [date(2024, 1, 1)]
    assert cp.total_commits == 6


def test_score_is_bounded_and_deterministic():
    start = datetime(2023, 1, 1, tzinfo=timezone.utc)
    daily = [start + timedelta(days=i) for i in range(40)]
    assert consistency_score(daily) == 100
    sparse = [start, start + timedelta(days=200)]
    # 2 distinct days over a 200 day span -> 10
    assert consistency_score(sparse) == 10
    assert consistency_score(list(reversed(sparse))) == consistency_score(sparse)


def test_rolling_windows_are_anchored_at_now():
    ts = [NOW - timedelta(days=3), NOW - timedelta(days=45), NOW - timedelta(days=400)]
    cp = analyze_commits(ts, now=NOW)
    assert cp.commits_last_month == 1
    assert cp.commits_this_year == 2
    assert 0 <= cp.consistency_score <= 100


def test_parse_timestamp():
    assert parse_timestamp("2024-01-01T10:00:00Z") == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None
