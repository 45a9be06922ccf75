# src/gateway/linkedin.py
"""
Professional-network profile sources.

Profiles behind a login are out of reach, so the pipeline either receives the profile
from the caller (ProvidedProfileSource) or synthesizes a thin one from what the résumé
itself states (SynthesizedProfileSource). Both validate the profile URL first.
"""
import logging
import re
from typing import Any, Protocol

from pydantic import ValidationError

from src.extract.links import parse_linkedin_handle
from src.extract.resume import guess_name, guess_headline
from src.schemas.entities import NetworkProfile, ExperienceEntry, EducationEntry
from src.schemas.errors import InvalidInputError, MalformedUpstreamResponse

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"(19|20)\d{2}")
_PRESENT_RE = re.compile(r"\b(present|current|now)\b", flags=re.IGNORECASE)


class NetworkProfileSource(Protocol):
    data_accuracy: str

    def fetch_profile(self, profile_url: str, resume_text: str) -> NetworkProfile:
        ...


def _require_handle(profile_url: str) -> str:
    handle = parse_linkedin_handle(profile_url)
    if not handle:
        raise InvalidInputError(f"not a LinkedIn profile URL: {profile_url!r}")
    return handle


def _years(span: Any) -> tuple[int | None, int | None]:
    """'2019 - Present' / 'Jan 2018 – Mar 2021' -> (2019, None) / (2018, 2021)."""
    s = str(span or "")
    years = [int(m.group(0)) for m in _YEAR_RE.finditer(s)]
    if not years:
        return None, None
    if len(years) == 1:
        return years[0], (None if _PRESENT_RE.search(s) else years[0])
    return years[0], years[1]


def _as_int(x, default=None):
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def _str_list(xs) -> list[str]:
    out, seen = [], set()
    for x in xs or []:
        if isinstance(x, dict):
            x = x.get("name") or x.get("title") or ""
        s = str(x).strip()
        if s and s.lower() not in seen:
            seen.add(s.lower())
            out.append(s)
    return out


def _experience(rows) -> list[ExperienceEntry]:
    out = []
    for r in rows or []:
        if not isinstance(r, dict):
            continue
        start, end = _as_int(r.get("start_year") or r.get("startYear")), _as_int(r.get("end_year") or r.get("endYear"))
        if start is None and (r.get("duration") or r.get("dates")):
            start, end = _years(r.get("duration") or r.get("dates"))
        out.append(ExperienceEntry(
            title=str(r.get("title") or ""),
            company=str(r.get("company") or ""),
            start_year=start,
            end_year=end,
            description=str(r.get("description") or ""),
        ))
    return out


def _education(rows) -> list[EducationEntry]:
    out = []
    for r in rows or []:
        if not isinstance(r, dict):
            continue
        start, end = _as_int(r.get("start_year") or r.get("startYear")), _as_int(r.get("end_year") or r.get("endYear"))
        if start is None and (r.get("years") or r.get("duration")):
            start, end = _years(r.get("years") or r.get("duration"))
        out.append(EducationEntry(
            institution=str(r.get("institution") or r.get("school") or ""),
            degree=str(r.get("degree") or ""),
            field=str(r.get("field") or r.get("fieldOfStudy") or ""),
            start_year=start,
            end_year=end,
        ))
    return out


def normalize_profile(raw: dict) -> NetworkProfile:
    """loosely-shaped profile JSON (snake_case or camelCase) -> NetworkProfile."""
    if not isinstance(raw, dict):
        raise MalformedUpstreamResponse("profile data must be a JSON object")
    try:
        return NetworkProfile(
            name=str(raw.get("name") or ""),
            headline=str(raw.get("headline") or ""),
            title=str(raw.get("title") or ""),
            company=str(raw.get("company") or ""),
            location=str(raw.get("location") or ""),
            summary=str(raw.get("summary") or raw.get("about") or ""),
            experience=_experience(raw.get("experience")),
            education=_education(raw.get("education")),
            skills=_str_list(raw.get("skills")),
            certifications=_str_list(raw.get("certifications")),
            languages=_str_list(raw.get("languages")),
            connections=max(0, _as_int(str(raw.get("connections") or "0").rstrip("+"), 0)),
            profile_picture=bool(raw.get("profile_picture") or raw.get("profilePicture")),
        )
    except ValidationError as e:
        raise MalformedUpstreamResponse("profile data does not match the expected shape") from e


class ProvidedProfileSource:
    data_accuracy = "provided"

    def __init__(self, raw: dict):
        self.raw = raw

    def fetch_profile(self, profile_url: str, resume_text: str) -> NetworkProfile:
        _require_handle(profile_url)
        return normalize_profile(self.raw)


class SynthesizedProfileSource:
    """
    No scraping: the profile is reduced to what we can state without the network
    (name + headline from the résumé header). Everything else stays empty so the
    consistency analyzer never invents a mismatch from missing data.
    """
    data_accuracy = "synthetic"

    def fetch_profile(self, profile_url: str, resume_text: str) -> NetworkProfile:
        handle = _require_handle(profile_url)
        name = guess_name(resume_text) or handle.replace("-", " ").title()
        logger.info("synthesizing network profile for %s (no provided data)", handle)
        return NetworkProfile(name=name, headline=guess_headline(resume_text))
