"""
Priority ladder, first match wins:
  strong_hire  avg>=85, no red flags, >=1 résumé match, AI<30     (95)
  hire         avg>=75, no critical flags, AI<50                 (85)
  maybe        avg>=60, <=1 critical flag                        (65)
  no_hire      otherwise                                         (80)
avg = mean(technical, activity, authenticity).
"""
from typing import List

from src.config.settings import VerdictCfg
from src.schemas.entities import AggregateProfile, Verdict


def decide(
        aggregate: AggregateProfile,
        red_flag_count: int,
        avg_ai_usage: float,
        resume_match_count: int,
        critical_flag_count: int = 0,
        cfg: VerdictCfg | None = None,
) -> Verdict:
    cfg = cfg or VerdictCfg()
    avg = aggregate.average
    reasoning: List[str] = [
        f"Average score {avg:.1f}/100 (technical {aggregate.technical_score}, "
        f"activity {aggregate.activity_score}, authenticity {aggregate.authenticity_score})",
        f"{red_flag_count} red flag(s), {critical_flag_count} critical",
        f"Average AI usage {avg_ai_usage:.0f}%, {resume_match_count} résumé-matched project(s)",
    ]

    if (avg >= cfg.strong_hire_min and red_flag_count == 0 and resume_match_count > 0
            and avg_ai_usage < cfg.strong_hire_max_ai):
        rec = "strong_hire"
        reasoning.append(f"Clears the strong-hire bar ({cfg.strong_hire_min:.0f}+) with verified, clean evidence")
    elif avg >= cfg.hire_min and critical_flag_count == 0 and avg_ai_usage < cfg.hire_max_ai:
        rec = "hire"
        reasoning.append(f"Clears the hire bar ({cfg.hire_min:.0f}+) with no critical issues")
        if red_flag_count:
            reasoning.append("Non-critical red flags should be discussed in interview")
        if resume_match_count == 0:
            reasoning.append("No project could be tied back to the résumé")
    elif avg >= cfg.maybe_min and critical_flag_count <= cfg.maybe_max_critical:
        rec = "maybe"
        reasoning.append(f"Clears the maybe bar ({cfg.maybe_min:.0f}+); evidence is mixed")
        if avg_ai_usage >= cfg.hire_max_ai:
            reasoning.append("High AI usage keeps this below a hire")
    else:
        rec = "no_hire"
        if avg < cfg.maybe_min:
            reasoning.append(f"Average score is below {cfg.maybe_min:.0f}")
        if critical_flag_count > cfg.maybe_max_critical:
            reasoning.append(f"Too many critical issues ({critical_flag_count})")

    return Verdict(recommendation=rec, confidence=cfg.confidence[rec], reasoning=reasoning)
