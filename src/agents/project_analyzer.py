# src/agents/project_analyzer.py
"""
Qualitative per-repository analysis backed by the LLM capability.

analyze_project() never raises: timeout, LLM exceptions, unparsable or non-object
output all produce fallback_analysis(). Model output is never trusted verbatim:
numbers are clamped to [0,100], enums are checked against their closed sets, lists are
coerced item by item. Homepage / GitHub Pages links are appended when the model
missed them.
"""
import json
import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import Path
from typing import Any

from src.agents.llm import LLMClient
from src.config.settings import LLMCfg
from src.extract.links import add_scheme
from src.schemas.entities import (
    ProjectAnalysis, RepositoryDetail, DemoLink, CodeQuality, RedFlag, PositiveIndicator, ActionItem,
    CollaborationEvidence, normalize_enum,
)
from src.schemas.errors import MalformedUpstreamResponse, UpstreamTimeoutError
from src.utils.cache import debug_dump

logger = logging.getLogger(__name__)

PROMPT_PATH = Path(__file__).resolve().parent.parent / "prompts" / "project_analysis_prompt.txt"


def load_prompt(file_path: Path = PROMPT_PATH) -> str:
    with open(file_path, "r", encoding="utf-8") as f:
        return f.read()


# --- Curly-safe formatter: only {name} etc. are substituted; JSON braces stay literal.
def safe_curly_format(template: str, vars: dict) -> str:
    return re.sub(r"\{(\w+)\}", lambda m: str(vars[m.group(1)]) if m.group(1) in vars else m.group(0), template)


def _strip_code_fences(s: str) -> str:
    if not s:
        return ""
    return re.sub(r"```(?:json|JSON)?|```", "", s).strip()


def _json_sanitize(s: str) -> str:
    if not s:
        return ""
    s = s.replace("\r", "")
    # remove // and /* */ comments (but not the // of a URL)
    s = re.sub(r"(?<![:\"'\w\\])//[^\n]*$", "", s, flags=re.MULTILINE)
    s = re.sub(r"/\*[\s\S]*?\*/", "", s)
    # Python → JSON literals
    s = re.sub(r"\bTrue\b", "true", s)
    s = re.sub(r"\bFalse\b", "false", s)
    s = re.sub(r"\bNone\b", "null", s)
    # fix trailing commas before } or ]
    s = re.sub(r",\s*([}\]])", r"\1", s)
    return s


def _first_json_object(s: str) -> str | None:
    """Return the first top-level {...} substring using brace balancing."""
    start = s.find("{")
    if start == -1:
        return None
    depth = 0
    in_str = False
    esc = False
    for i, ch in enumerate(s[start:], start=start):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == "\"":
                in_str = False
            continue
        if ch == "\"":
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return s[start:i + 1]
    return None


def parse_analysis_json(text: str) -> dict:
    """fence-stripped JSON -> sanitized JSON -> first balanced object. Anything else is malformed."""
    s = _strip_code_fences(text)
    if not s:
        raise MalformedUpstreamResponse("empty LLM response")
    js: Any = None
    for candidate in (lambda: s, lambda: _json_sanitize(s), lambda: _first_json_object(_json_sanitize(s))):
        payload = candidate()
        if not payload:
            continue
        try:
            js = json.loads(payload)
            break
        except json.JSONDecodeError:
            continue
    else:
        raise MalformedUpstreamResponse("LLM response is not valid JSON")

    # ---- SHAPE GUARD: if the model slipped an ARRAY, take first object ----
    if isinstance(js, list) and js and isinstance(js[0], dict):
        js = js[0]
    if not isinstance(js, dict):
        raise MalformedUpstreamResponse(f"expected a JSON object, got {type(js).__name__}")
    return js


def _clamp(x, default: float = 0.0) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    if math.isnan(v):
        return default
    return round(max(0.0, min(100.0, v)), 2)


def _bool(x) -> bool:
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return x != 0
    if isinstance(x, str):
        return x.strip().lower() in ("true", "yes", "y", "1")
    return False


def _text(x) -> str:
    if x is None:
        return ""
    if isinstance(x, (list, tuple)):
        return "; ".join(_text(v) for v in x if v is not None)
    return str(x).strip()


def _dedupe(xs) -> list[str]:
    out, seen = [], set()
    for x in xs if isinstance(xs, list) else []:
        s = _text(x)
        if s and s.lower() not in seen:
            seen.add(s.lower())
            out.append(s)
    return out


def _dicts(xs) -> list[dict]:
    """list items as dicts; bare strings become {'description': s}."""
    out = []
    for x in xs if isinstance(xs, list) else []:
        if isinstance(x, dict):
            out.append(x)
        elif isinstance(x, str) and x.strip():
            out.append({"description": x.strip(), "action": x.strip()})
    return out


def _norm_url(u: str) -> str:
    return (u or "").strip().rstrip("/").lower()


def synthesize_demo_links(detail: RepositoryDetail, links: list[DemoLink]) -> list[DemoLink]:
    """append homepage / GitHub Pages links the model left out."""
    out = list(links)
    known = {_norm_url(d.url) for d in out}
    if detail.homepage and detail.homepage.strip():
        url = add_scheme(detail.homepage.strip())
        if _norm_url(url) not in known:
            out.append(DemoLink(type="live_site", url=url, description="Project homepage",
                                working=True, hiring_impact="positive"))
            known.add(_norm_url(url))
    if detail.has_pages and detail.owner:
        url = f"https://{detail.owner.lower()}.github.io/{detail.name}"
        if _norm_url(url) not in known:
            out.append(DemoLink(type="github_pages", url=url, description="GitHub Pages deployment",
                                working=True, hiring_impact="positive"))
    return out


def _demo_links(rows) -> list[DemoLink]:
    out = []
    for r in _dicts(rows):
        url = _text(r.get("url"))
        if not re.match(r"^https?://\S+$", url, flags=re.I):
            continue
        out.append(DemoLink(
            type=normalize_enum("demo_type", r.get("type")),
            url=url,
            description=_text(r.get("description")),
            working=_bool(r.get("working", True)),
            hiring_impact=normalize_enum("impact", r.get("hiring_impact")),
        ))
    return out


def normalize_analysis(raw: dict, detail: RepositoryDetail) -> ProjectAnalysis:
    cq = raw.get("code_quality") if isinstance(raw.get("code_quality"), dict) else {}
    collab = raw.get("collaboration_evidence") if isinstance(raw.get("collaboration_evidence"), dict) else {}

    red_flags = [RedFlag(severity=normalize_enum("severity", r.get("severity") or r.get("type")),
                         description=_text(r.get("description")), evidence=_text(r.get("evidence")))
                 for r in _dicts(raw.get("red_flags")) if _text(r.get("description"))]
    positives = [PositiveIndicator(category=normalize_enum("category", r.get("category") or r.get("type")),
                                   description=_text(r.get("description")), evidence=_text(r.get("evidence")))
                 for r in _dicts(raw.get("positive_indicators")) if _text(r.get("description"))]
    recs = [ActionItem(action=_text(r.get("action")), priority=normalize_enum("priority", r.get("priority")))
            for r in _dicts(raw.get("recommendations")) if _text(r.get("action"))]

    return ProjectAnalysis(
        name=detail.name,
        html_url=detail.html_url,
        created_at=detail.created_at,
        resume_mentioned=_bool(raw.get("resume_mentioned")),
        resume_evidence=_text(raw.get("resume_evidence")),
        completeness_score=_clamp(raw.get("completeness_score")),
        demo_links=synthesize_demo_links(detail, _demo_links(raw.get("demo_links"))),
        code_quality=CodeQuality(
            naming_score=_clamp(cq.get("naming_score")),
            comments_score=_clamp(cq.get("comments_score")),
            structure_score=_clamp(cq.get("structure_score")),
            ai_usage_percentage=_clamp(cq.get("ai_usage_percentage")),
            overall_score=_clamp(cq.get("overall_score")),
            professional_readme=_bool(cq.get("professional_readme")),
            has_tests=_bool(cq.get("has_tests")),
            follows_conventions=_bool(cq.get("follows_conventions")),
            confidence=_clamp(cq.get("confidence")),
        ),
        red_flags=red_flags,
        positive_indicators=positives,
        recommendations=recs,
        project_highlights=_dedupe(raw.get("project_highlights")),
        technologies_detected=_dedupe(raw.get("technologies_detected")),
        project_complexity=normalize_enum("complexity", raw.get("project_complexity")),
        estimated_time_investment=_text(raw.get("estimated_time_investment")),
        collaboration_evidence=CollaborationEvidence(
            is_group_project=_bool(collab.get("is_group_project")),
            evidence=_text(collab.get("evidence")),
            individual_contribution_clarity=_clamp(collab.get("individual_contribution_clarity"), default=50.0),
        ),
        commit_pattern=detail.commit_pattern,
    )


def fallback_analysis(detail: RepositoryDetail, reason: str = "") -> ProjectAnalysis:
    """deterministic stand-in built only from repository metadata."""
    readme = detail.readme_text or ""
    n = detail.contributors_count
    return ProjectAnalysis(
        name=detail.name,
        html_url=detail.html_url,
        created_at=detail.created_at,
        completeness_score=60.0 if readme.strip() else 30.0,
        demo_links=synthesize_demo_links(detail, []),
        code_quality=CodeQuality(
            naming_score=70.0, comments_score=50.0, structure_score=60.0,
            ai_usage_percentage=10.0, overall_score=60.0,
            professional_readme=len(readme) > 200,
        ),
        red_flags=[RedFlag(severity="minor", description="Automated analysis could not be completed",
                           evidence=reason)],
        recommendations=[ActionItem(action=f"Manually review repository {detail.name}", priority="high")],
        technologies_detected=[detail.language] if detail.language else [],
        project_complexity="intermediate",
        collaboration_evidence=CollaborationEvidence(
            is_group_project=n > 1,
            evidence=f"{n} contributor(s)",
            individual_contribution_clarity=50.0,
        ),
        commit_pattern=detail.commit_pattern,
        is_fallback=True,
    )


def _fmt_date(d) -> str:
    return d.date().isoformat() if d else "unknown"


class ProjectAnalyzer:
    """prompt -> LLM (raced against a timeout) -> validated ProjectAnalysis."""

    def __init__(self, llm: LLMClient, cfg: LLMCfg | None = None):
        self.llm = llm
        self.cfg = cfg or LLMCfg()
        self.template = load_prompt()
        self._executor = ThreadPoolExecutor(max_workers=max(1, self.cfg.max_workers), thread_name_prefix="llm")

    def build_prompt(self, detail: RepositoryDetail, resume_excerpt: str, required_skills: list[str]) -> str:
        cp = detail.commit_pattern
        return safe_curly_format(self.template, {
            "name": detail.name,
            "html_url": detail.html_url,
            "description": detail.description or "none",
            "language": detail.language or "unknown",
            "stars": detail.stargazers_count,
            "forks": detail.forks_count,
            "size": detail.size,
            "topics": ", ".join(detail.topics) or "none",
            "homepage": detail.homepage or "none",
            "has_pages": "yes" if detail.has_pages else "no",
            "license": detail.license or "none",
            "contributors": detail.contributors_count,
            "created_at": _fmt_date(detail.created_at),
            "updated_at": _fmt_date(detail.updated_at),
            "total_commits": cp.total_commits,
            "commits_this_year": cp.commits_this_year,
            "commits_last_month": cp.commits_last_month,
            "consistency_score": cp.consistency_score,
            "batch_commit_dates": ", ".join(d.isoformat() for d in cp.batch_commit_dates) or "none",
            "readme": (detail.readme_text or "")[: self.cfg.readme_budget] or "(no README)",
            "resume": (resume_excerpt or "")[: self.cfg.resume_budget] or "(no résumé text)",
            "skills": ", ".join(required_skills or []) or "none specified",
        })

    def _complete(self, prompt: str) -> str:
        fut = self._executor.submit(self.llm.complete, prompt)
        try:
            return fut.result(timeout=self.cfg.timeout_s)
        except FutureTimeout as e:
            fut.cancel()
            raise UpstreamTimeoutError(f"LLM analysis exceeded {self.cfg.timeout_s}s") from e

    def analyze_project(self, detail: RepositoryDetail, resume_excerpt: str,
                        required_skills: list[str]) -> ProjectAnalysis:
        text = ""
        try:
            text = self._complete(self.build_prompt(detail, resume_excerpt, required_skills))
            raw = parse_analysis_json(text)
            debug_dump("project", text, raw)
            return normalize_analysis(raw, detail)
        except Exception as e:  # contract: never raise, always a schema-valid analysis
            logger.warning("analysis of %s fell back: %s: %s", detail.name, e.__class__.__name__, e)
            if text:
                debug_dump("project", text, None)
            return fallback_analysis(detail, reason=f"{e.__class__.__name__}: {e}")

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
