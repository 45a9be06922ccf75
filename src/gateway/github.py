# src/gateway/github.py
"""
GitHub REST v3 access for the evidence pipeline.

Every request: local rate limiter -> requests.Session.get -> status mapping -> retry_call.
Status mapping:
  2xx          -> JSON body (unparsable -> MalformedUpstreamResponse)
  404          -> NotFoundError
  429 / 403 with exhausted quota -> RateLimitedError(retry_after)
  401 / 403    -> NotFoundError (not publicly accessible)
  5xx, timeouts, dropped connections -> UpstreamTimeoutError (retried)
  other 4xx    -> InvalidInputError (fail fast)
README / contributors / commits are optional: any failure there degrades to a default.
"""
import base64
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from src.analysis.commits import analyze_commits, parse_timestamp
from src.config.settings import AppCfg, SelectionCfg
from src.extract.links import validate_github_handle
from src.schemas.entities import CodeHostProfile, RepositorySummary, RepositoryDetail, CommitPattern
from src.schemas.errors import (
    EvidenceError, NotFoundError, RateLimitedError, UpstreamTimeoutError, MalformedUpstreamResponse,
    InvalidInputError,
)
from src.utils.rate_limit import SlidingWindowRateLimiter
from src.utils.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

RATE_KEY = "github"
MAX_REPO_PAGES = 3


def _retry_after(resp) -> float | None:
    ra = resp.headers.get("Retry-After")
    if ra:
        try:
            return max(0.0, float(ra))
        except ValueError:
            pass
    reset = resp.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


def _nested_date(commit: dict, role: str):
    who = commit.get(role)
    return who.get("date") if isinstance(who, dict) else None


def _text_or_none(x) -> str | None:
    return x if isinstance(x, str) and x else None


class GitHubGateway:
    def __init__(self, cfg: AppCfg | None = None, session: requests.Session | None = None,
                 limiter: SlidingWindowRateLimiter | None = None, token: str | None = None,
                 sleep=time.sleep):
        load_dotenv()
        self.cfg = cfg or AppCfg()
        self.session = session or requests.Session()
        self.limiter = limiter or SlidingWindowRateLimiter.from_cfg(self.cfg.rate_limit)
        self.policy = RetryPolicy.from_cfg(self.cfg.retry)
        self._sleep = sleep
        token = token if token is not None else os.getenv("GITHUB_TOKEN")
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.cfg.gateway.user_agent,
        }
        if token:
            self.headers["Authorization"] = f"token {token}"

    # ---------- transport ----------
    def _request_once(self, path: str, params: dict | None) -> Any:
        self.limiter.acquire(RATE_KEY)
        url = self.cfg.gateway.base_url.rstrip("/") + path
        try:
            resp = self.session.get(url, headers=self.headers, params=params, timeout=self.cfg.gateway.timeout_s)
        except requests.Timeout as e:
            raise UpstreamTimeoutError(f"GET {path} timed out") from e
        except requests.ConnectionError as e:
            raise UpstreamTimeoutError(f"GET {path} connection failed") from e
        except requests.RequestException as e:
            raise UpstreamTimeoutError(f"GET {path} failed: {e.__class__.__name__}") from e

        status = resp.status_code
        if 200 <= status < 300:
            if status == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as e:
                raise MalformedUpstreamResponse(f"GET {path} returned non-JSON body") from e
        if status == 404:
            raise NotFoundError(f"{path} not found")
        if status == 429 or (status == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"):
            raise RateLimitedError(f"GET {path} rate limited ({status})", retry_after=_retry_after(resp))
        if status in (401, 403):
            raise NotFoundError(f"{path} is not publicly accessible ({status})")
        if status >= 500:
            raise UpstreamTimeoutError(f"GET {path} failed upstream ({status})")
        raise InvalidInputError(f"GET {path} rejected ({status})")

    def _get(self, path: str, params: dict | None = None) -> Any:
        return retry_call(lambda: self._request_once(path, params), self.policy,
                          sleep=self._sleep, label=f"GET {path}")

    # ---------- profile + listing ----------
    def fetch_profile(self, handle: str) -> CodeHostProfile:
        if not validate_github_handle(handle):
            raise InvalidInputError(f"invalid GitHub handle: {handle!r}")
        data = self._get(f"/users/{handle}")
        try:
            return CodeHostProfile.model_validate(data)
        except ValidationError as e:
            raise MalformedUpstreamResponse(f"unexpected profile payload for {handle}") from e

    def fetch_repositories(self, handle: str) -> list[RepositorySummary]:
        if not validate_github_handle(handle):
            raise InvalidInputError(f"invalid GitHub handle: {handle!r}")
        per_page = self.cfg.gateway.per_page
        out: list[RepositorySummary] = []
        for page in range(1, MAX_REPO_PAGES + 1):
            rows = self._get(f"/users/{handle}/repos", {"sort": "updated", "per_page": per_page, "page": page})
            if rows is None:
                break
            if not isinstance(rows, list):
                raise MalformedUpstreamResponse(f"repository listing for {handle} is not a list")
            for r in rows:
                try:
                    out.append(RepositorySummary.model_validate(r))
                except ValidationError as e:
                    logger.warning("skipping malformed repository entry for %s: %s", handle, e.errors()[:1])
            if len(rows) < per_page:
                break
        return out

    # ---------- optional sub-resources ----------
    def fetch_readme(self, handle: str, repo: str) -> str:
        try:
            data = self._get(f"/repos/{handle}/{repo}/readme")
        except EvidenceError as e:
            logger.warning("README unavailable for %s/%s: %s", handle, repo, e)
            return ""
        if not isinstance(data, dict) or not data.get("content"):
            return ""
        try:
            text = base64.b64decode(data["content"]).decode("utf-8", errors="replace")
        except (ValueError, TypeError):
            logger.warning("README for %s/%s is not valid base64", handle, repo)
            return ""
        return text[: self.cfg.gateway.readme_max_chars]

    def fetch_contributors_count(self, handle: str, repo: str) -> int:
        try:
            rows = self._get(f"/repos/{handle}/{repo}/contributors", {"per_page": 100})
        except EvidenceError as e:
            logger.warning("contributors unavailable for %s/%s: %s", handle, repo, e)
            return 1
        return len(rows) if isinstance(rows, list) and rows else 1

    def fetch_commit_timestamps(self, handle: str, repo: str) -> list[datetime]:
        try:
            rows = self._get(f"/repos/{handle}/{repo}/commits", {"per_page": 100})
        except EvidenceError as e:
            logger.warning("commits unavailable for %s/%s: %s", handle, repo, e)
            return []
        out = []
        for row in rows if isinstance(rows, list) else []:
            commit = row.get("commit") if isinstance(row, dict) else None
            if not isinstance(commit, dict):
                continue
            raw = _nested_date(commit, "committer") or _nested_date(commit, "author")
            ts = parse_timestamp(raw)
            if ts is not None:
                out.append(ts)
        return out

    def fetch_repository_detail(self, handle: str, repo: str) -> RepositoryDetail | None:
        """None when the repository itself is gone; sub-resources never fail the call."""
        try:
            data = self._get(f"/repos/{handle}/{repo}")
        except NotFoundError:
            return None
        try:
            summary = RepositorySummary.model_validate(data)
        except ValidationError as e:
            raise MalformedUpstreamResponse(f"unexpected repository payload for {handle}/{repo}") from e

        lic = data.get("license") if isinstance(data, dict) else None
        if not isinstance(lic, dict):
            lic = {}
        timestamps = self.fetch_commit_timestamps(handle, repo)
        return RepositoryDetail.from_summary(
            handle, summary,
            readme_text=self.fetch_readme(handle, repo),
            contributors_count=self.fetch_contributors_count(handle, repo),
            license=_text_or_none(lic.get("spdx_id")) or _text_or_none(lic.get("name")),
            commit_pattern=(analyze_commits(timestamps, batch_min=self.cfg.flags.batch_commit_min)
                            if timestamps else CommitPattern()),
        )


# ---------- caller-side selection ----------
def repo_rank_score(repo: RepositorySummary, weights: dict[str, float]) -> float:
    return (weights.get("stars", 0.0) * repo.stargazers_count
            + weights.get("forks", 0.0) * repo.forks_count
            + weights.get("size", 0.0) * repo.size
            + weights.get("topics", 0.0) * len(repo.topics)
            + (weights.get("homepage", 0.0) if repo.homepage else 0.0))


def is_active(repo: RepositorySummary, inactive_after_days: int, now: datetime | None = None) -> bool:
    if repo.updated_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    updated = repo.updated_at if repo.updated_at.tzinfo else repo.updated_at.replace(tzinfo=timezone.utc)
    return now - updated <= timedelta(days=inactive_after_days)


def select_repositories(repos: list[RepositorySummary], cfg: SelectionCfg | None = None,
                        now: datetime | None = None) -> list[RepositorySummary]:
    """drop forks/archived/inactive, rank by weighted score, keep the top N."""
    cfg = cfg or SelectionCfg()
    eligible = [r for r in repos if not r.fork and not r.archived and is_active(r, cfg.inactive_after_days, now)]
    eligible.sort(key=lambda r: (-repo_rank_score(r, cfg.weights), r.name.lower()))
    return eligible[: cfg.top_n]
