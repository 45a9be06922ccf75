import os, yaml
from pydantic import BaseModel, ValidationError
from typing import Dict


class GatewayCfg(BaseModel):
    base_url: str = "https://api.github.com"
    user_agent: str = "candidate-evidence-engine"
    timeout_s: float = 10.0
    per_page: int = 100
    readme_max_chars: int = 4000


class RetryCfg(BaseModel):
    max_attempts: int = 3
    base_delay: float = 2.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0
    jitter: float = 0.5
    # upper bound on how long we honour a server-provided Retry-After
    max_retry_after: float = 60.0


class RateLimitCfg(BaseModel):
    limit: int = 60
    window_s: float = 60.0
    max_keys: int = 1024


class SelectionCfg(BaseModel):
    top_n: int = 8
    inactive_after_days: int = 730
    # ranking weights: stars, forks, size (per 100 units), topic count, homepage present
    weights: Dict[str, float] = {
        "stars": 3.0,
        "forks": 2.0,
        "size": 0.01,
        "topics": 5.0,
        "homepage": 10.0,
    }


class LLMCfg(BaseModel):
    model: str = "models/gemini-2.5-flash"
    temperature: float = 0.2
    max_output_tokens: int = 4096
    timeout_s: float = 30.0
    max_workers: int = 4
    readme_budget: int = 4000
    resume_budget: int = 3000


class ScoringWeights(BaseModel):
    tech_quality: float = 0.4
    tech_resume_match: float = 15.0
    tech_demo: float = 8.0
    tech_followers: float = 0.2
    tech_followers_cap: float = 20.0
    activity_repos: float = 1.5
    activity_followers: float = 0.3
    activity_completeness: float = 0.4
    activity_active_repos: float = 2.0
    auth_red_flag: float = 15.0
    auth_ai_usage: float = 0.3


class FlagThresholds(BaseModel):
    batch_min_repos: int = 3
    batch_commit_min: int = 5
    high_ai_usage: float = 70.0
    mismatch_min_repos: int = 5
    unclear_clarity: float = 40.0
    unclear_min_projects: int = 2
    fork_ratio: float = 0.5
    fork_min_repos: int = 10
    productivity_min_projects: int = 4
    young_account_days: int = 730
    suspicious_commit_projects: int = 3
    # positive indicators
    high_quality: float = 80.0
    many_followers: int = 50
    original_to_fork_ratio: float = 2.0
    high_confidence: float = 85.0
    demo_share: float = 0.5


class VerdictCfg(BaseModel):
    strong_hire_min: float = 85.0
    strong_hire_max_ai: float = 30.0
    hire_min: float = 75.0
    hire_max_ai: float = 50.0
    maybe_min: float = 60.0
    maybe_max_critical: int = 1
    confidence: Dict[str, int] = {"strong_hire": 95, "hire": 85, "maybe": 65, "no_hire": 80}


class NetworkCfg(BaseModel):
    honesty_floor: float = 20.0
    honesty_penalty: Dict[str, float] = {"critical": 30.0, "moderate": 15.0, "minor": 5.0}
    timeline_critical_years: float = 2.0
    timeline_moderate_years: float = 1.0
    # presence weights, each term is capped by its own weight
    completeness_weights: Dict[str, float] = {
        "profile_picture": 10.0,
        "headline": 10.0,
        "summary": 15.0,
        "experience": 25.0,
        "education": 15.0,
        "skills": 10.0,
        "certifications": 5.0,
        "connections": 10.0,
    }
    professional_weights: Dict[str, float] = {
        "connections": 30.0,
        "profile_picture": 10.0,
        "summary": 15.0,
        "certifications": 20.0,
        "experience": 15.0,
        "education": 10.0,
    }


class AppCfg(BaseModel):
    seed: int = 42
    gateway: GatewayCfg = GatewayCfg()
    retry: RetryCfg = RetryCfg()
    rate_limit: RateLimitCfg = RateLimitCfg()
    selection: SelectionCfg = SelectionCfg()
    llm: LLMCfg = LLMCfg()
    scoring: ScoringWeights = ScoringWeights()
    flags: FlagThresholds = FlagThresholds()
    verdict: VerdictCfg = VerdictCfg()
    network: NetworkCfg = NetworkCfg()


def load_cfg(path: str = "configs/app.yaml", cli_seed: int | None = None) -> AppCfg:
    data = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    # ENV overrides
    if "APP_SEED" in os.environ:
        data["seed"] = int(os.environ["APP_SEED"])
    llm = dict(data.get("llm") or {})
    if "GEMINI_MODEL" in os.environ:
        llm["model"] = os.environ["GEMINI_MODEL"]
    if "LLM_TIMEOUT_S" in os.environ:
        llm["timeout_s"] = float(os.environ["LLM_TIMEOUT_S"])
    if "GENAI_MAX_CONCURRENCY" in os.environ:
        llm["max_workers"] = int(os.environ["GENAI_MAX_CONCURRENCY"])
    if llm:
        data["llm"] = llm

    # CLI override (highest precedence)
    if cli_seed is not None:
        data["seed"] = int(cli_seed)

    try:
        return AppCfg.model_validate(data)
    except ValidationError as e:
        raise RuntimeError(
            f"Invalid config in {path}. "
            f"Check the YAML sections or the ENV overrides "
            f"(APP_SEED, GEMINI_MODEL, LLM_TIMEOUT_S, GENAI_MAX_CONCURRENCY)."
        ) from e
