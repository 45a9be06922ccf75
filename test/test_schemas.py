import pytest
from pydantic import ValidationError

from src.schemas.entities import (
    AggregateProfile, CandidateLinks, CodeQuality, JobDescription, ProjectAnalysis, RepositoryDetail,
    RepositorySummary, Verdict, normalize_enum,
)
from src.schemas.errors import NotFoundError, RateLimitedError


def test_min_fields():
    JobDescription(title="SWE", skills=["java"])
    ProjectAnalysis(name="demo")
    RepositorySummary(id=1, name="demo")


def test_enums_fall_back_to_closed_set_defaults():
    assert normalize_enum("severity", "CRITICAL") == "critical"
    assert normalize_enum("severity", "catastrophic") == "minor"
    assert normalize_enum("demo_type", "Live Site") == "live_site"
    assert normalize_enum("complexity", None) == "intermediate"


def test_scores_are_range_checked():
    with pytest.raises(ValidationError):
        CodeQuality(overall_score=101)
    with pytest.raises(ValidationError):
        Verdict(recommendation="hire", confidence=85, reasoning=[])
    with pytest.raises(ValidationError):
        Verdict(recommendation="definitely", confidence=85, reasoning=["x"])


def test_value_objects_are_frozen():
    agg = AggregateProfile(technical_score=90, activity_score=80, authenticity_score=70)
    assert agg.average == 80
    with pytest.raises(ValidationError):
        agg.technical_score = 10
    with pytest.raises(ValidationError):
        CandidateLinks(github="https://github.com/a").github = None


def test_detail_extends_summary():
    s = RepositorySummary(id=7, name="shop", stargazers_count=3)
    d = RepositoryDetail.from_summary("jane", s, readme_text="hi")
    assert (d.owner, d.name, d.stargazers_count, d.readme_text, d.contributors_count) == ("jane", "shop", 3, "hi", 1)


def test_errors_report_their_category():
    r = NotFoundError("/users/ghost not found").to_report()
    assert (r.category, r.message) == ("not_found", "/users/ghost not found")
    assert RateLimitedError(retry_after=3).to_report().category == "limited"
