"""Small, regex-only readers for claims stated in plain résumé text."""
import re

_NAME_LINE_RE = re.compile(r"^[A-Z][A-Za-z'.-]+(?:\s+[A-Z][A-Za-z'.-]+){1,3}$")
_YEARS_RE = re.compile(r"(\d{1,2})\s*\+?\s*(?:years?|yrs?)(?:\s+of)?\s+(?:professional\s+|industry\s+|work\s+)?experience",
                       flags=re.IGNORECASE)
_SECTION_WORDS = {"resume", "curriculum vitae", "cv", "summary", "experience", "education", "skills"}


def _lines(text: str) -> list[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def guess_name(text: str) -> str | None:
    """the candidate's name is conventionally the first short, capitalized line."""
    for ln in _lines(text)[:3]:
        ln = re.split(r"\s[|\-–]\s", ln)[0].strip()
        if ln.lower() in _SECTION_WORDS:
            continue
        if _NAME_LINE_RE.match(ln):
            return ln
    return None


def guess_headline(text: str) -> str:
    lines = _lines(text)
    name = guess_name(text)
    for ln in lines[:4]:
        if name and ln.startswith(name):
            rest = ln[len(name):].strip(" |-–")
            if rest:
                return rest
            continue
        if "@" in ln or "http" in ln.lower() or ln.lower() in _SECTION_WORDS:
            continue
        return ln
    return ""


def claimed_years(text: str) -> int | None:
    """largest 'N years of experience' claim, if any."""
    hits = [int(m.group(1)) for m in _YEARS_RE.finditer(text or "")]
    return max(hits) if hits else None


def mentions(text: str, phrase: str) -> bool:
    """case-insensitive whole-word containment; empty phrases never match."""
    phrase = (phrase or "").strip()
    if not phrase:
        return False
    pat = r"(?<![A-Za-z0-9])" + re.escape(phrase) + r"(?![A-Za-z0-9])"
    return re.search(pat, text or "", flags=re.IGNORECASE) is not None
