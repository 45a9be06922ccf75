"""
Résumé vs professional-network profile.

Produces Inconsistency records (personal, timeline, experience, education, skills) and
three scores:
  honesty      = clamp(100 - 30*critical - 15*moderate - 5*minor, 20, 100)
  completeness = weighted presence of profile fields
  professional = weighted presence of the fields recruiters read first
Missing profile data never counts as an inconsistency.
"""
import logging
import re
from datetime import datetime, timezone
from typing import List

from src.config.settings import NetworkCfg
from src.extract.resume import claimed_years, guess_name, mentions
from src.schemas.entities import Inconsistency, JobDescription, LinkedInAnalysis, NetworkProfile
from src.scoring.aggregate import clamp_score

logger = logging.getLogger(__name__)


def _name_tokens(name: str) -> set[str]:
    return {t for t in re.split(r"[^a-z]+", (name or "").lower()) if len(t) > 1}


def profile_years(profile: NetworkProfile, current_year: int) -> int | None:
    """span from the earliest start to the latest end (open roles end now)."""
    spans = [(e.start_year, e.end_year or current_year) for e in profile.experience if e.start_year]
    if not spans:
        return None
    return max(0, max(end for _, end in spans) - min(start for start, _ in spans))


def find_inconsistencies(profile: NetworkProfile, resume_text: str, job: JobDescription | None,
                         cfg: NetworkCfg, current_year: int,
                         data_accuracy: str = "provided") -> tuple[List[Inconsistency], List[str]]:
    issues: List[Inconsistency] = []
    verified: List[str] = []

    # personal (a synthesized profile took its name from the résumé, nothing to verify)
    resume_name = guess_name(resume_text)
    if resume_name and profile.name and data_accuracy != "synthetic":
        if _name_tokens(resume_name) & _name_tokens(profile.name):
            verified.append(f"Name matches: {profile.name}")
        else:
            issues.append(Inconsistency(
                severity="critical", category="personal",
                description="Name on the profile does not match the résumé",
                resume_value=resume_name, profile_value=profile.name,
                recommendation="Confirm the profile belongs to the candidate",
            ))

    # timeline
    claimed = claimed_years(resume_text)
    derived = profile_years(profile, current_year)
    if claimed is not None and derived is not None:
        gap = claimed - derived
        if gap > cfg.timeline_moderate_years:
            issues.append(Inconsistency(
                severity="critical" if gap > cfg.timeline_critical_years else "moderate",
                category="timeline",
                description=f"Résumé claims {claimed} years of experience, profile history covers {derived}",
                resume_value=f"{claimed} years", profile_value=f"{derived} years",
                recommendation="Walk through the employment timeline year by year",
            ))
        else:
            verified.append(f"Experience length consistent ({claimed} claimed, {derived} on profile)")

    # experience
    for exp in profile.experience:
        if not exp.company:
            continue
        if mentions(resume_text, exp.company):
            verified.append(f"Employment at {exp.company} confirmed")
        else:
            issues.append(Inconsistency(
                severity="moderate", category="experience",
                description=f"Role at {exp.company} appears on the profile but not on the résumé",
                profile_value=f"{exp.title} at {exp.company}".strip(),
                recommendation=f"Ask why the {exp.company} role was left off the résumé",
            ))

    # education
    for edu in profile.education:
        if not edu.institution:
            continue
        if mentions(resume_text, edu.institution):
            verified.append(f"Education at {edu.institution} confirmed")
        else:
            issues.append(Inconsistency(
                severity="moderate", category="education",
                description=f"{edu.institution} appears on the profile but not on the résumé",
                profile_value=" ".join(x for x in (edu.degree, edu.field, edu.institution) if x),
                recommendation="Verify the degree and institution",
            ))

    # skills (only when the profile lists skills at all)
    if profile.skills and job:
        listed = {s.lower() for s in profile.skills}
        for skill in job.skills:
            if not mentions(resume_text, skill):
                continue
            if skill.lower() in listed:
                verified.append(f"Skill {skill} listed on both")
            else:
                issues.append(Inconsistency(
                    severity="minor", category="skills",
                    description=f"{skill} is claimed on the résumé but not listed on the profile",
                    resume_value=skill,
                    recommendation=f"Probe {skill} depth in the technical interview",
                ))
    return issues, verified


def honesty_score(issues: List[Inconsistency], cfg: NetworkCfg) -> int:
    penalty = sum(cfg.honesty_penalty.get(i.severity, 0.0) for i in issues)
    return clamp_score(100.0 - penalty, lo=cfg.honesty_floor)


def _presence(profile: NetworkProfile) -> dict[str, float]:
    """0..1 fill level per field."""
    return {
        "profile_picture": 1.0 if profile.profile_picture else 0.0,
        "headline": 1.0 if (profile.headline or profile.title) else 0.0,
        "summary": 1.0 if profile.summary.strip() else 0.0,
        "experience": min(1.0, len(profile.experience) / 2),
        "education": min(1.0, float(len(profile.education))),
        "skills": min(1.0, len(profile.skills) / 5),
        "certifications": min(1.0, float(len(profile.certifications))),
        "connections": min(1.0, profile.connections / 500),
    }


def completeness_score(profile: NetworkProfile, cfg: NetworkCfg) -> int:
    p = _presence(profile)
    return clamp_score(sum(w * p.get(k, 0.0) for k, w in cfg.completeness_weights.items()))


def professional_score(profile: NetworkProfile, cfg: NetworkCfg) -> int:
    p = _presence(profile)
    # deeper history counts more here than for completeness
    p["experience"] = min(1.0, len(profile.experience) / 3)
    p["certifications"] = min(1.0, len(profile.certifications) / 2)
    return clamp_score(sum(w * p.get(k, 0.0) for k, w in cfg.professional_weights.items()))


def analyze_network_profile(
        profile: NetworkProfile,
        resume_text: str,
        job: JobDescription | None = None,
        cfg: NetworkCfg | None = None,
        profile_url: str = "",
        data_accuracy: str = "provided",
        now: datetime | None = None,
) -> LinkedInAnalysis:
    cfg = cfg or NetworkCfg()
    now = now or datetime.now(timezone.utc)
    issues, verified = find_inconsistencies(profile, resume_text, job, cfg, now.year, data_accuracy)
    honesty = honesty_score(issues, cfg)
    completeness = completeness_score(profile, cfg)
    professional = professional_score(profile, cfg)

    counts = {s: sum(1 for i in issues if i.severity == s) for s in ("critical", "moderate", "minor")}
    red = [f"Critical inconsistency ({i.category}): {i.description}" for i in issues if i.severity == "critical"]
    if counts["moderate"] >= 3:
        red.append(f"{counts['moderate']} moderate discrepancies between résumé and profile")
    if honesty < 50:
        red.append(f"Low honesty score ({honesty}/100)")

    pos = []
    if profile.connections >= 500:
        pos.append("Well-connected: 500+ connections")
    if profile.certifications:
        pos.append(f"{len(profile.certifications)} certification(s) listed")
    if completeness >= 80:
        pos.append(f"Complete profile ({completeness}/100)")
    if len(verified) >= 3:
        pos.append(f"{len(verified)} résumé claims verified against the profile")

    recs: List[str] = []
    for i in issues:
        if i.recommendation and i.recommendation not in recs:
            recs.append(i.recommendation)
    if data_accuracy == "synthetic":
        recs.append("Profile data was not available; verify employment history directly with the candidate")
    if honesty < 70:
        recs.append("Run reference checks before an offer")
    if not recs:
        recs.append("No follow-up needed on profile consistency")

    if issues:
        logger.info("network profile %s: %d inconsistencies (%s)", profile_url or "-", len(issues), counts)

    return LinkedInAnalysis(
        profile_url=profile_url,
        data_accuracy="synthetic" if data_accuracy == "synthetic" else "provided",
        profile_data=profile,
        inconsistencies=issues,
        verified_info=verified,
        red_flags=red,
        positive_indicators=pos,
        recommendations=recs,
        honesty_score=honesty,
        profile_completeness=completeness,
        professional_score=professional,
        chain_of_thought=[
            f"Loaded {data_accuracy} profile for {profile.name or 'unknown'}",
            f"Compared against résumé: {len(verified)} verified, {counts['critical']} critical, "
            f"{counts['moderate']} moderate, {counts['minor']} minor",
            f"Scores: honesty {honesty}, completeness {completeness}, professional {professional}",
        ],
    )
