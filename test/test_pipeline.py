import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from src.agents.project_analyzer import ProjectAnalyzer
from src.config.settings import AppCfg, LLMCfg
from src.gateway.github import GitHubGateway
from src.gateway.linkedin import SynthesizedProfileSource
from src.pipeline.evaluate import analyze_github, evaluate_candidate, load_job
from src.schemas.entities import CodeHostProfile, JobDescription, RepositorySummary
from src.schemas.errors import NotFoundError, UpstreamTimeoutError

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)
JOB = JobDescription(title="Backend Engineer", skills=["Python", "Postgres"])


class FakeLLM:
    model_name = "fake"

    def __init__(self, reply=None, exc=None):
        self.reply = reply
        self.exc = exc

    def complete(self, prompt):
        if self.exc:
            raise self.exc
        return self.reply


class FakeGateway:
    def __init__(self, profile=None, repos=(), details=None, profile_error=None):
        self.profile = profile or CodeHostProfile(login="jane-dev")
        self.repos = list(repos)
        self.details = details or {}
        self.profile_error = profile_error
        self.limiter = MagicMock()

    def fetch_profile(self, handle):
        if self.profile_error:
            raise self.profile_error
        return self.profile

    def fetch_repositories(self, handle):
        return self.repos

    def fetch_repository_detail(self, handle, repo):
        d = self.details.get(repo)
        if isinstance(d, Exception):
            raise d
        return d


def _repo(i, stars=0, **kw):
    return RepositorySummary(id=i, name=f"repo{i}", html_url=f"https://github.com/jane-dev/repo{i}",
                             stargazers_count=stars, language="Python",
                             created_at=f"2024-0{i}-01T00:00:00Z", updated_at="2025-05-01T00:00:00Z", **kw)


def _analyzer(llm):
    return ProjectAnalyzer(llm, LLMCfg(max_workers=2, timeout_s=5))


GOOD_REPLY = json.dumps({
    "resume_mentioned": True,
    "completeness_score": 80,
    "code_quality": {"overall_score": 85, "ai_usage_percentage": 10, "confidence": 90},
    "technologies_detected": ["Python", "Postgres"],
})


def test_account_without_repositories_scores_from_profile_only():
    gw = FakeGateway(profile=CodeHostProfile(login="octocat", followers=10))
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        ga = analyze_github("octocat", "", JOB, gw, analyzer, AppCfg(), now=NOW)
    assert ga.technical_score == 0
    assert ga.activity_score == 3  # 0.3 * 10 followers
    assert ga.authenticity_score == 0
    assert ga.red_flags == []
    assert ga.hiring_verdict.recommendation == "no_hire"
    assert ga.repository_analysis == []


def test_repositories_are_analysed_in_rank_order():
    repos = [_repo(1, stars=1), _repo(2, stars=40), _repo(3, fork=True)]
    gw = FakeGateway(repos=repos, details={"repo2": UpstreamTimeoutError("slow")})
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        ga = analyze_github("jane-dev", "Built repo1 and repo2", JOB, gw, analyzer, AppCfg(), now=NOW)
    assert [a.name for a in ga.repository_analysis] == ["repo2", "repo1"]
    m = ga.overall_metrics
    assert (m.total_repos, m.original_projects, m.forked_projects) == (3, 2, 1)
    assert m.resume_matched_repos == 2
    assert m.average_code_quality == 85.0
    assert m.project_diversity_score == 20.0
    assert m.fallback_analyses == 0
    assert len(ga.hiring_verdict.reasoning) >= 3
    assert ga.chain_of_thought[-1].startswith("Verdict:")


def test_llm_failures_fall_back_and_are_counted():
    repos = [_repo(1), _repo(2)]
    with _analyzer(FakeLLM(exc=RuntimeError("quota"))) as analyzer:
        ga = analyze_github("jane-dev", "", JOB, FakeGateway(repos=repos), analyzer, AppCfg(), now=NOW)
    assert len(ga.repository_analysis) == 2
    assert all(a.is_fallback for a in ga.repository_analysis)
    assert ga.overall_metrics.fallback_analyses == 2
    assert any("analysed automatically" in r for r in ga.recommendations)
    # a fallback is a per-project note, not a global red flag
    assert not any("Automated analysis" in f for f in ga.red_flags)


RESUME = """Jane Doe
Backend Engineer
GitHub: https://github.com/jane-dev
LinkedIn: https://www.linkedin.com/in/jane-dev
"""


def test_branch_failure_is_isolated():
    gw = FakeGateway(profile_error=NotFoundError("/users/jane-dev not found"))
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        report = evaluate_candidate(RESUME, JOB, gateway=gw, analyzer=analyzer,
                                    network_source=SynthesizedProfileSource(), cfg=AppCfg(), now=NOW)
    assert report.links.github == "https://github.com/jane-dev"
    assert report.github is None
    assert report.github_error.category == "not_found"
    assert report.linkedin is not None
    assert report.linkedin.data_accuracy == "synthetic"
    assert report.linkedin_error is None
    gw.limiter.sweep.assert_called_once()


def test_missing_links_skip_both_branches():
    gw = FakeGateway()
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        report = evaluate_candidate("Jane Doe\nno links here", JOB, gateway=gw, analyzer=analyzer,
                                    network_source=SynthesizedProfileSource(), cfg=AppCfg(), now=NOW)
    assert report.github is None and report.github_error is None
    assert report.linkedin is None and report.linkedin_error is None


def test_load_job_reads_yaml(tmp_path):
    p = tmp_path / "job.yaml"
    p.write_text("title: Data Engineer\nskills: [Python, Spark]\nexperience: 3+ years\n", encoding="utf-8")
    jd = load_job(str(p))
    assert jd.title == "Data Engineer"
    assert jd.skills == ["Python", "Spark"]


def test_load_job_rejects_missing_title(tmp_path):
    p = tmp_path / "job.yaml"
    p.write_text("skills: [Python]\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_job(str(p))


class _Resp:
    def __init__(self, body):
        self.status_code = 200
        self.headers = {}
        self.content = b"x"
        self._body = body

    def json(self):
        return self._body


def test_transport_error_mid_run_becomes_a_branch_error():
    session = MagicMock()
    err = requests.exceptions.ChunkedEncodingError("truncated body")
    session.get.side_effect = [_Resp({"login": "jane-dev"}), err, err, err]
    gw = GitHubGateway(AppCfg(), session=session, token="", sleep=lambda s: None)
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        report = evaluate_candidate(RESUME, JOB, gateway=gw, analyzer=analyzer,
                                    network_source=SynthesizedProfileSource(), cfg=AppCfg(), now=NOW)
    assert report.github is None
    assert report.github_error.category == "timeout"
    assert report.linkedin is not None


def test_unexpected_failures_stay_inside_their_repository_or_branch():
    repos = [_repo(1), _repo(2)]
    gw = FakeGateway(repos=repos, details={"repo1": AttributeError("'str' object has no attribute 'get'")})
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        ga = analyze_github("jane-dev", "", JOB, gw, analyzer, AppCfg(), now=NOW)
    assert sorted(a.name for a in ga.repository_analysis) == ["repo1", "repo2"]

    gw = FakeGateway(profile_error=KeyError("login"))
    with _analyzer(FakeLLM(GOOD_REPLY)) as analyzer:
        report = evaluate_candidate(RESUME, JOB, gateway=gw, analyzer=analyzer,
                                    network_source=SynthesizedProfileSource(), cfg=AppCfg(), now=NOW)
    assert report.github is None
    assert report.github_error.category == "malformed_upstream_response"
    assert report.linkedin is not None
    gw.limiter.sweep.assert_called_once()


def test_mismatch_advice_follows_the_mismatch_flag():
    # profile says 50 repos but only 2 are listed: neither the flag nor the advice fires
    gw = FakeGateway(profile=CodeHostProfile(login="jane-dev", public_repos=50), repos=[_repo(1), _repo(2)])
    reply = json.dumps({"resume_mentioned": False, "code_quality": {"overall_score": 70}})
    with _analyzer(FakeLLM(reply)) as analyzer:
        ga = analyze_github("jane-dev", "", JOB, gw, analyzer, AppCfg(), now=NOW)
    assert ga.overall_metrics.total_repos == 50
    assert not any(f.startswith("Résumé mismatch") for f in ga.red_flags)
    assert not any("résumé claims" in r for r in ga.recommendations)

    repos = [_repo(i) for i in range(1, 7)]
    gw = FakeGateway(repos=repos)
    with _analyzer(FakeLLM(reply)) as analyzer:
        ga = analyze_github("jane-dev", "", JOB, gw, analyzer, AppCfg(), now=NOW)
    assert any(f.startswith("Résumé mismatch") for f in ga.red_flags)
    assert any("résumé claims" in r for r in ga.recommendations)
