"""
Rule engine: human-readable red flags and positive indicators for the code-host branch.
Every rule is evaluated independently; any subset may fire. Thresholds are absolute
counts from FlagThresholds.
"""
from collections import Counter
from datetime import datetime, timezone
from typing import List

from src.config.settings import FlagThresholds
from src.schemas.entities import (
    CodeHostProfile, FlagReport, ProjectAnalysis, RepositorySummary, COMPLEXITY_ORDER,
)
from src.scoring.aggregate import avg_ai_usage, avg_code_quality, avg_confidence, resume_match_count, demo_count

MISMATCH_FLAG = "Résumé mismatch"


def critical_flag_count(analyses: List[ProjectAnalysis]) -> int:
    return sum(1 for a in analyses for f in a.red_flags if f.severity == "critical")


def largest_same_day_batch(repositories: List[RepositorySummary]):
    """-> (date, count) of the busiest creation day, earliest date on ties; None without dates."""
    days = Counter(r.created_at.date() for r in repositories if r.created_at is not None)
    if not days:
        return None
    return min(days.items(), key=lambda kv: (-kv[1], kv[0]))


def _account_age_days(profile: CodeHostProfile, now: datetime) -> int | None:
    if profile.created_at is None:
        return None
    created = profile.created_at if profile.created_at.tzinfo else profile.created_at.replace(tzinfo=timezone.utc)
    return (now - created).days


def detect_flags(
        repositories: List[RepositorySummary],
        analyses: List[ProjectAnalysis],
        profile: CodeHostProfile,
        cfg: FlagThresholds | None = None,
        now: datetime | None = None,
) -> FlagReport:
    cfg = cfg or FlagThresholds()
    now = now or datetime.now(timezone.utc)
    red: List[str] = []
    pos: List[str] = []

    total = len(repositories)
    forked = sum(1 for r in repositories if r.fork)
    original = total - forked
    matched = resume_match_count(analyses)

    # --- red flags ---
    batch = largest_same_day_batch(repositories)
    if batch and batch[1] >= cfg.batch_min_repos:
        red.append(f"Batch upload detected: {batch[1]} repositories created on {batch[0].isoformat()}")

    if analyses:
        ai = avg_ai_usage(analyses)
        if ai > cfg.high_ai_usage:
            red.append(f"High AI dependency: estimated {ai:.0f}% AI-generated code on average")

    critical = [a.name for a in analyses if any(f.severity == "critical" for f in a.red_flags)]
    if critical:
        red.append(f"Critical issues found in {len(critical)} project(s): {', '.join(critical)}")

    if matched == 0 and total > cfg.mismatch_min_repos:
        red.append(f"{MISMATCH_FLAG}: none of the {total} public repositories are referenced in the résumé")

    unclear = [a for a in analyses if a.collaboration_evidence.is_group_project
               and a.collaboration_evidence.individual_contribution_clarity < cfg.unclear_clarity]
    if len(unclear) >= cfg.unclear_min_projects:
        red.append(f"Unclear individual contribution in {len(unclear)} group projects")

    if total > cfg.fork_min_repos and forked / total > cfg.fork_ratio:
        red.append(f"High fork ratio: {forked} of {total} repositories are forks")

    age = _account_age_days(profile, now)
    complex_solo = [a for a in analyses if COMPLEXITY_ORDER[a.project_complexity] >= COMPLEXITY_ORDER["advanced"]
                    and not a.collaboration_evidence.is_group_project]
    if age is not None and age < cfg.young_account_days and len(complex_solo) >= cfg.productivity_min_projects:
        red.append(f"Unusually high productivity: {len(complex_solo)} advanced solo projects "
                   f"on an account {age} days old")

    batchy = [a.name for a in analyses if a.commit_pattern.batch_commit_dates]
    if len(batchy) >= cfg.suspicious_commit_projects:
        red.append(f"Suspicious commit patterns: {len(batchy)} projects were largely built in single-day bursts")

    # --- positive indicators ---
    if analyses:
        q = avg_code_quality(analyses)
        if q > cfg.high_quality:
            pos.append(f"High code quality: average score {q:.0f}/100")
        conf = avg_confidence(analyses)
        if conf > cfg.high_confidence:
            pos.append(f"Assessment made with high confidence ({conf:.0f}%)")
        demos = demo_count(analyses)
        if demos / len(analyses) > cfg.demo_share:
            pos.append(f"Deploys work: {demos} of {len(analyses)} projects have live demos")
    if profile.followers > cfg.many_followers:
        pos.append(f"Recognized by the community: {profile.followers} followers")
    if original > cfg.original_to_fork_ratio * forked:
        pos.append(f"Mostly original work: {original} original vs {forked} forked repositories")
    if matched > 0:
        pos.append(f"Résumé claims backed by code: {matched} project(s) referenced in the résumé")

    return FlagReport(red_flags=red, positive_indicators=pos)
