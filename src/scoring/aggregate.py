"""
inputs: per-repository ProjectAnalysis list (unordered), the GitHub profile, repo counts
and the number of global red flags from the flag detector.
outputs: AggregateProfile with three 0-100 ints:
  technical    = 0.4*avg quality + 15*résumé-matched + 8*with-demo + min(20, 0.2*followers)
  activity     = 1.5*total repos + 0.3*followers + 0.4*avg completeness + 2*active repos
  authenticity = 100 - 15*global red flags - 0.3*avg AI usage
Coefficients live in ScoringWeights.
"""
from typing import List
import numpy as np

from src.config.settings import ScoringWeights
from src.schemas.entities import AggregateProfile, CodeHostProfile, ProjectAnalysis, RepoCounts


def clamp_score(x: float, lo: float = 0.0, hi: float = 100.0) -> int:
    return int(round(max(lo, min(hi, float(x)))))


def _mean(values: List[float]) -> float:
    """np.mean without the NaN on empty input."""
    return float(np.mean(values)) if values else 0.0


def avg_code_quality(analyses: List[ProjectAnalysis]) -> float:
    return _mean([a.code_quality.overall_score for a in analyses])


def avg_ai_usage(analyses: List[ProjectAnalysis]) -> float:
    return _mean([a.code_quality.ai_usage_percentage for a in analyses])


def avg_completeness(analyses: List[ProjectAnalysis]) -> float:
    return _mean([a.completeness_score for a in analyses])


def avg_confidence(analyses: List[ProjectAnalysis]) -> float:
    return _mean([a.code_quality.confidence for a in analyses])


def resume_match_count(analyses: List[ProjectAnalysis]) -> int:
    return sum(1 for a in analyses if a.resume_mentioned)


def demo_count(analyses: List[ProjectAnalysis]) -> int:
    return sum(1 for a in analyses if a.demo_links)


def aggregate(
        analyses: List[ProjectAnalysis],
        profile: CodeHostProfile,
        repo_counts: RepoCounts,
        red_flag_count: int = 0,
        weights: ScoringWeights | None = None,
) -> AggregateProfile:
    """
    With no analyses there is nothing to judge technically or to authenticate, so those
    two are 0; activity keeps its profile-only terms.
    """
    w = weights or ScoringWeights()
    followers = max(0, profile.followers)

    activity = (w.activity_repos * repo_counts.total
                + w.activity_followers * followers
                + w.activity_completeness * avg_completeness(analyses)
                + w.activity_active_repos * repo_counts.active)

    if not analyses:
        return AggregateProfile(technical_score=0, activity_score=clamp_score(activity), authenticity_score=0)

    technical = (w.tech_quality * avg_code_quality(analyses)
                 + w.tech_resume_match * resume_match_count(analyses)
                 + w.tech_demo * demo_count(analyses)
                 + min(w.tech_followers_cap, w.tech_followers * followers))
    authenticity = 100.0 - w.auth_red_flag * red_flag_count - w.auth_ai_usage * avg_ai_usage(analyses)

    return AggregateProfile(
        technical_score=clamp_score(technical),
        activity_score=clamp_score(activity),
        authenticity_score=clamp_score(authenticity),
    )
