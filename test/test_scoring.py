import itertools
from datetime import datetime, timezone

from src.schemas.entities import (
    AggregateProfile, CodeHostProfile, CodeQuality, CollaborationEvidence, CommitPattern, DemoLink, ProjectAnalysis,
    RedFlag, RepoCounts, RepositorySummary, VERDICT_ORDER,
)
from src.scoring.aggregate import aggregate
from src.scoring.flags import detect_flags, critical_flag_count
from src.scoring.verdict import decide

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _pa(name="p", quality=70.0, ai=10.0, completeness=50.0, matched=False, demo=False, flags=(), group=False,
        clarity=50.0, complexity="intermediate", confidence=60.0, batch_days=()):
    return ProjectAnalysis(
        name=name,
        resume_mentioned=matched,
        completeness_score=completeness,
        demo_links=[DemoLink(url=f"https://{name}.example.com")] if demo else [],
        code_quality=CodeQuality(overall_score=quality, ai_usage_percentage=ai, confidence=confidence),
        red_flags=[RedFlag(severity=s, description=f"{s} issue") for s in flags],
        project_complexity=complexity,
        collaboration_evidence=CollaborationEvidence(is_group_project=group, individual_contribution_clarity=clarity),
        commit_pattern=CommitPattern(batch_commit_dates=list(batch_days)),
    )


def _repo(i, created="2023-03-01", fork=False):
    return RepositorySummary(id=i, name=f"r{i}", created_at=f"{created}T10:00:00Z", fork=fork)


def test_aggregate_formulas():
    analyses = [_pa("a", quality=80, ai=20, completeness=60, matched=True, demo=True),
                _pa("b", quality=60, ai=40, completeness=40)]
    profile = CodeHostProfile(login="jane", followers=30)
    agg = aggregate(analyses, profile, RepoCounts(total=10, active=4), red_flag_count=1)
    # 0.4*70 + 15*1 + 8*1 + min(20, 6) = 57
    assert agg.technical_score == 57
    # 1.5*10 + 0.3*30 + 0.4*50 + 2*4 = 52
    assert agg.activity_score == 52
    # 100 - 15 - 0.3*30 = 76
    assert agg.authenticity_score == 76


def test_aggregate_clamps_to_range():
    analyses = [_pa(str(i), quality=100, matched=True, demo=True, ai=100) for i in range(8)]
    profile = CodeHostProfile(login="star", followers=100000)
    agg = aggregate(analyses, profile, RepoCounts(total=300, active=100), red_flag_count=9)
    assert agg.technical_score == 100
    assert agg.activity_score == 100
    assert agg.authenticity_score == 0


def test_empty_analyses_are_zero_not_nan():
    agg = aggregate([], CodeHostProfile(login="nobody"), RepoCounts())
    assert (agg.technical_score, agg.activity_score, agg.authenticity_score) == (0, 0, 0)


def test_octocat_with_no_repositories_is_no_hire():
    profile = CodeHostProfile(login="octocat", followers=40, following=9, public_repos=0)
    report = detect_flags([], [], profile, now=NOW)
    agg = aggregate([], profile, RepoCounts(), red_flag_count=len(report.red_flags))
    assert agg.technical_score == 0
    assert agg.activity_score == 12  # 0.3 * 40, profile fields only
    verdict = decide(agg, len(report.red_flags), 0.0, 0)
    assert verdict.recommendation == "no_hire"
    assert report.red_flags == []


def test_batch_upload_reports_exact_count():
    repos = [_repo(i, created="2024-01-01") for i in range(5)] + [_repo(9, created="2023-05-05")]
    report = detect_flags(repos, [], CodeHostProfile(login="x"), now=NOW)
    assert "Batch upload detected: 5 repositories created on 2024-01-01" in report.red_flags


def test_two_same_day_repos_do_not_trigger_batch():
    repos = [_repo(1, created="2024-01-01"), _repo(2, created="2024-01-01")]
    report = detect_flags(repos, [], CodeHostProfile(login="x"), now=NOW)
    assert not any(f.startswith("Batch upload") for f in report.red_flags)


def test_all_red_flag_rules_can_fire_together():
    repos = [_repo(i, created="2024-01-01", fork=i < 7) for i in range(12)]
    analyses = [
        _pa("a", ai=90, flags=("critical",), group=True, clarity=20, complexity="expert", batch_days=["2024-01-01"]),
        _pa("b", ai=80, group=True, clarity=10, complexity="advanced", batch_days=["2024-01-02"]),
        _pa("c", ai=75, complexity="expert", batch_days=["2024-01-03"]),
        _pa("d", ai=85, complexity="advanced"),
        _pa("e", ai=95, complexity="expert"),
        _pa("f", ai=90, complexity="expert"),
    ]
    profile = CodeHostProfile(login="x", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
    report = detect_flags(repos, analyses, profile, now=NOW)
    prefixes = ["Batch upload", "High AI dependency", "Critical issues", "Résumé mismatch",
                "Unclear individual contribution", "High fork ratio", "Unusually high productivity",
                "Suspicious commit patterns"]
    for p in prefixes:
        assert any(f.startswith(p) for f in report.red_flags), p
    assert critical_flag_count(analyses) == 1


def test_positive_indicators():
    repos = [_repo(i, created=f"2023-0{i + 1}-01") for i in range(3)]
    analyses = [_pa("a", quality=90, matched=True, demo=True, confidence=90),
                _pa("b", quality=85, demo=True, confidence=88)]
    report = detect_flags(repos, analyses, CodeHostProfile(login="x", followers=120), now=NOW)
    assert report.red_flags == []
    assert len(report.positive_indicators) == 6


def test_strong_hire_scenario():
    agg = AggregateProfile(technical_score=90, activity_score=80, authenticity_score=95)
    v = decide(agg, red_flag_count=0, avg_ai_usage=10, resume_match_count=1)
    assert v.recommendation == "strong_hire"
    assert v.confidence == 95


def test_ladder_falls_through_in_order():
    high = AggregateProfile(technical_score=90, activity_score=90, authenticity_score=90)
    assert decide(high, 1, 10, 1).recommendation == "hire"
    assert decide(high, 0, 40, 0).recommendation == "hire"
    assert decide(high, 2, 10, 1, critical_flag_count=1).recommendation == "maybe"
    assert decide(high, 3, 10, 1, critical_flag_count=2).recommendation == "no_hire"
    mid = AggregateProfile(technical_score=60, activity_score=65, authenticity_score=70)
    v = decide(mid, 0, 60, 0)
    assert (v.recommendation, v.confidence) == ("maybe", 65)


def test_verdict_is_total_over_inputs():
    scores = [0, 59, 60, 75, 85, 100]
    for t, a, au, flags, ai, matched, crit in itertools.product(scores, scores, scores, (0, 2), (0, 40, 90), (0, 1),
                                                                  (0, 2)):
        v = decide(AggregateProfile(technical_score=t, activity_score=a, authenticity_score=au), flags, ai, matched,
                   critical_flag_count=min(crit, flags))
        assert v.recommendation in VERDICT_ORDER
        assert 0 <= v.confidence <= 100
        assert len(v.reasoning) >= 1
