# Run CLI -> python -m src.pipeline.evaluate --resume data/resume.txt --job data/job.yaml --output out/jane
# or with a supplied LinkedIn export -> ... --linkedin-profile data/linkedin.json --track
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import yaml

from src.agents.llm import GeminiClient
from src.agents.project_analyzer import ProjectAnalyzer
from src.config.settings import AppCfg, load_cfg
from src.extract.links import extract_links, parse_github_handle, validate_github_handle
from src.gateway.github import GitHubGateway, select_repositories, is_active
from src.gateway.linkedin import NetworkProfileSource, ProvidedProfileSource, SynthesizedProfileSource
from src.schemas.entities import (
    CandidateReport, CodeHostProfile, GitHubAnalysis, JobDescription, LinkedInAnalysis, OverallMetrics,
    ProjectAnalysis, RepoCounts, RepositoryDetail, RepositorySummary, AggregateProfile, FlagReport,
)
from src.schemas.errors import EvidenceError, InvalidInputError, MalformedUpstreamResponse
from src.scoring.aggregate import (
    aggregate, avg_ai_usage, avg_code_quality, resume_match_count,
)
from src.scoring.flags import MISMATCH_FLAG, detect_flags, critical_flag_count
from src.scoring.network import analyze_network_profile
from src.scoring.verdict import decide
from src.utils.run_ctx import mlflow_run, set_seed, log_scores
from src.utils.storage import save_json, save_jsonl

logger = logging.getLogger(__name__)


def count_repositories(profile: CodeHostProfile, repos: list[RepositorySummary], inactive_after_days: int,
                       now: datetime) -> RepoCounts:
    forked = sum(1 for r in repos if r.fork)
    return RepoCounts(
        total=max(len(repos), profile.public_repos),
        active=sum(1 for r in repos if not r.archived and is_active(r, inactive_after_days, now)),
        original=len(repos) - forked,
        forked=forked,
    )


def build_metrics(profile: CodeHostProfile, analyses: list[ProjectAnalysis], counts: RepoCounts) -> OverallMetrics:
    techs = {t.lower() for a in analyses for t in a.technologies_detected}
    consistency = [a.commit_pattern.consistency_score for a in analyses if a.commit_pattern.total_commits]
    return OverallMetrics(
        total_repos=counts.total,
        active_repos=counts.active,
        analyzed_repos=len(analyses),
        resume_matched_repos=resume_match_count(analyses),
        average_code_quality=round(avg_code_quality(analyses), 1),
        commit_consistency=round(float(np.mean(consistency)), 1) if consistency else 0.0,
        collaboration_score=round(min(100.0, (profile.followers + profile.following) / 2), 1),
        original_projects=counts.original,
        forked_projects=counts.forked,
        project_diversity_score=float(min(100, len(techs) * 10)),
        fallback_analyses=sum(1 for a in analyses if a.is_fallback),
    )


def build_recommendations(agg: AggregateProfile, flags: FlagReport, metrics: OverallMetrics,
                          analyses: list[ProjectAnalysis]) -> list[str]:
    recs = []
    if any(f.startswith(MISMATCH_FLAG) for f in flags.red_flags):
        recs.append("Ask the candidate to point to the repositories behind their résumé claims")
    if analyses and metrics.average_code_quality < 60:
        recs.append("Include a live coding exercise to verify hands-on skill")
    if flags.red_flags:
        recs.append("Discuss the red flags with the candidate before moving forward")
    if agg.technical_score > 85 and not flags.red_flags:
        recs.append("Strong technical evidence: consider fast-tracking to the final round")
    if analyses and avg_ai_usage(analyses) > 50:
        recs.append("Ask the candidate to walk through AI-assisted code in their own words")
    if metrics.fallback_analyses:
        recs.append(f"{metrics.fallback_analyses} of {metrics.analyzed_repos} repositories could not be "
                    f"analysed automatically; review them manually")
    return recs


def analyze_github(handle: str, resume_text: str, job: JobDescription, gateway: GitHubGateway,
                   analyzer: ProjectAnalyzer, cfg: AppCfg | None = None,
                   now: datetime | None = None) -> GitHubAnalysis:
    """profile -> listing -> top-N selection -> pooled per-repo analysis -> flags -> scores -> verdict."""
    cfg = cfg or AppCfg()
    now = now or datetime.now(timezone.utc)
    if not validate_github_handle(handle):
        raise InvalidInputError(f"invalid GitHub handle: {handle!r}")

    profile = gateway.fetch_profile(handle)
    repos = gateway.fetch_repositories(handle)
    selected = select_repositories(repos, cfg.selection, now)
    steps = [f"Fetched profile {profile.login}: {profile.public_repos} public repos, {profile.followers} followers",
             f"Selected {len(selected)} of {len(repos)} repositories for deep analysis"]

    def _analyze(summary: RepositorySummary) -> ProjectAnalysis:
        try:
            detail = gateway.fetch_repository_detail(handle, summary.name)
        except Exception as e:  # any detail failure degrades to the listing row
            logger.warning("detail fetch failed for %s/%s, using listing data: %s: %s", handle, summary.name,
                           e.__class__.__name__, e)
            detail = None
        if detail is None:
            detail = RepositoryDetail.from_summary(handle, summary)
        return analyzer.analyze_project(detail, resume_text, job.skills)

    analyses: list[ProjectAnalysis] = []
    with ThreadPoolExecutor(max_workers=max(1, cfg.llm.max_workers)) as ex:
        futs = [ex.submit(_analyze, r) for r in selected]
        for fut in as_completed(futs):
            analyses.append(fut.result())
    order = {r.name: i for i, r in enumerate(selected)}
    analyses.sort(key=lambda a: order.get(a.name, len(order)))

    counts = count_repositories(profile, repos, cfg.selection.inactive_after_days, now)
    flags = detect_flags(repos, analyses, profile, cfg.flags, now)
    agg = aggregate(analyses, profile, counts, red_flag_count=len(flags.red_flags), weights=cfg.scoring)
    crit = critical_flag_count(analyses)
    ai = avg_ai_usage(analyses)
    matched = resume_match_count(analyses)
    verdict = decide(agg, len(flags.red_flags), ai, matched, crit, cfg.verdict)
    metrics = build_metrics(profile, analyses, counts)

    if metrics.fallback_analyses:
        logger.warning("%s: %d of %d repository analyses fell back", handle, metrics.fallback_analyses,
                       len(analyses))
    steps += [
        f"Analysed {len(analyses)} repositories ({metrics.fallback_analyses} fallback), "
        f"{matched} matched to the résumé",
        f"Detected {len(flags.red_flags)} red flag(s) and {len(flags.positive_indicators)} positive indicator(s)",
        f"Scores: technical {agg.technical_score}, activity {agg.activity_score}, "
        f"authenticity {agg.authenticity_score}",
        f"Verdict: {verdict.recommendation} ({verdict.confidence}% confidence)",
    ]

    return GitHubAnalysis(
        profile=profile,
        repository_analysis=analyses,
        overall_metrics=metrics,
        red_flags=flags.red_flags,
        positive_indicators=flags.positive_indicators,
        technical_score=agg.technical_score,
        activity_score=agg.activity_score,
        authenticity_score=agg.authenticity_score,
        recommendations=build_recommendations(agg, flags, metrics, analyses),
        hiring_verdict=verdict,
        chain_of_thought=steps,
    )


def analyze_linkedin(profile_url: str, resume_text: str, job: JobDescription, source: NetworkProfileSource,
                     cfg: AppCfg | None = None, now: datetime | None = None) -> LinkedInAnalysis:
    cfg = cfg or AppCfg()
    profile = source.fetch_profile(profile_url, resume_text)
    return analyze_network_profile(profile, resume_text, job, cfg.network, profile_url=profile_url,
                                   data_accuracy=source.data_accuracy, now=now)


def _run_branch(name: str, fn):
    """-> (result, None) or (None, ErrorReport); nothing else leaves a branch."""
    try:
        return fn(), None
    except EvidenceError as e:
        logger.warning("%s branch failed (%s): %s", name, e.category, e)
        return None, e.to_report()
    except Exception as e:
        logger.exception("%s branch failed unexpectedly", name)
        err = MalformedUpstreamResponse(f"{name} evidence could not be processed: {e.__class__.__name__}: {e}")
        return None, err.to_report()


def evaluate_candidate(resume_text: str, job: JobDescription, *, gateway: GitHubGateway,
                       analyzer: ProjectAnalyzer, network_source: NetworkProfileSource,
                       cfg: AppCfg | None = None, now: datetime | None = None) -> CandidateReport:
    """both branches in parallel; a failure in one is reported and never stops the other."""
    cfg = cfg or AppCfg()
    links = extract_links(resume_text)

    def _github():
        if not links.github:
            return None, None
        handle = parse_github_handle(links.github) or ""
        return _run_branch("GitHub", lambda: analyze_github(handle, resume_text, job, gateway, analyzer, cfg, now))

    def _linkedin():
        if not links.linkedin:
            return None, None
        return _run_branch("LinkedIn", lambda: analyze_linkedin(links.linkedin, resume_text, job, network_source,
                                                                cfg, now))

    try:
        with ThreadPoolExecutor(max_workers=2) as ex:
            gh_fut, li_fut = ex.submit(_github), ex.submit(_linkedin)
            github, github_error = gh_fut.result()
            linkedin, linkedin_error = li_fut.result()
    finally:
        gateway.limiter.sweep()

    return CandidateReport(links=links, github=github, github_error=github_error,
                           linkedin=linkedin, linkedin_error=linkedin_error)


def load_job(path: str) -> JobDescription:
    # YAML is a superset of JSON, one loader covers both
    with open(path, "r", encoding="utf-8") as f:
        return JobDescription.model_validate(yaml.safe_load(f) or {})


def run_evaluation(resume: str, job: str, output_dir: str, linkedin_profile: str | None = None,
                   track: bool = False, config: str = "configs/app.yaml") -> CandidateReport:
    cfg = load_cfg(config)
    set_seed(cfg.seed)
    resume_text = Path(resume).read_text(encoding="utf-8")
    jd = load_job(job)

    if linkedin_profile:
        source = ProvidedProfileSource(json.loads(Path(linkedin_profile).read_text(encoding="utf-8")))
    else:
        source = SynthesizedProfileSource()
    gateway = GitHubGateway(cfg)
    with ProjectAnalyzer(GeminiClient(cfg.llm), cfg.llm) as analyzer:
        report = evaluate_candidate(resume_text, jd, gateway=gateway, analyzer=analyzer,
                                    network_source=source, cfg=cfg)

    out = Path(output_dir)
    save_json(out / "report.json", report.model_dump(mode="json"))
    if report.github:
        save_jsonl(out / "repository_analysis.jsonl",
                   [a.model_dump(mode="json") for a in report.github.repository_analysis])

    if track:
        name = parse_github_handle(report.links.github) if report.links.github else "no-github"
        with mlflow_run(name=f"eval-{name}", tags={"stage": "evaluation", "job": jd.title}):
            if report.github:
                log_scores({
                    "technical_score": report.github.technical_score,
                    "activity_score": report.github.activity_score,
                    "authenticity_score": report.github.authenticity_score,
                    "verdict_confidence": report.github.hiring_verdict.confidence,
                    "red_flags": len(report.github.red_flags),
                    **report.github.overall_metrics.model_dump(),
                })
            if report.linkedin:
                log_scores({
                    "honesty_score": report.linkedin.honesty_score,
                    "profile_completeness": report.linkedin.profile_completeness,
                    "professional_score": report.linkedin.professional_score,
                    "inconsistencies": len(report.linkedin.inconsistencies),
                })
    return report


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Evaluate a candidate against public GitHub/LinkedIn evidence.")
    parser.add_argument("--resume", required=True, help="plain-text résumé")
    parser.add_argument("--job", required=True, help="job description (YAML or JSON)")
    parser.add_argument("--output", required=True)
    parser.add_argument("--linkedin-profile", default=None, help="optional LinkedIn profile export (JSON)")
    parser.add_argument("--config", default="configs/app.yaml")
    parser.add_argument("--track", action="store_true", help="log scores to MLflow")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    rep = run_evaluation(args.resume, args.job, args.output, linkedin_profile=args.linkedin_profile,
                         track=args.track, config=args.config)
    if rep.github:
        v = rep.github.hiring_verdict
        print(f"[github] {v.recommendation} ({v.confidence}%)")
    if rep.github_error:
        print(f"[github] error {rep.github_error.category}: {rep.github_error.message}")
    if rep.linkedin:
        print(f"[linkedin] honesty={rep.linkedin.honesty_score}")
    if rep.linkedin_error:
        print(f"[linkedin] error {rep.linkedin_error.category}: {rep.linkedin_error.message}")
