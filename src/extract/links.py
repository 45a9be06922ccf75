"""
Identity-link extraction from plain résumé text.

Two passes:
  1) absolute URLs, classified by host/path (github profile, linkedin /in/ profile,
     portfolio-ish, generic website, other). First URL seen per category wins.
  2) labelled text ("GitHub: jane-dev", "linkedin.com/in/jane") for categories the
     URL pass left empty. Patterns are tried in order; first hit wins.

Everything here is pure and never raises; bad input just leaves fields unset.
"""
import re
from urllib.parse import urlparse

from src.schemas.entities import CandidateLinks, OtherLink

_URL_RE = re.compile(r"https?://[^\s<>\"'()\[\]{}|\\^`]+", flags=re.IGNORECASE)
_TRAILING = ".,;:!?'\""

_HANDLE_RE = re.compile(r"^[A-Za-z0-9-]+$")
GITHUB_HANDLE_MAX = 39
LINKEDIN_HANDLE_MAX = 100

# first path segments on github.com that are never user profiles
RESERVED_SEGMENTS = {
    "about", "account", "api", "apps", "blog", "collections", "contact", "customer-stories",
    "dashboard", "docs", "enterprise", "events", "explore", "features", "gist", "help",
    "issues", "join", "login", "logout", "marketplace", "new", "notifications", "orgs",
    "organizations", "pricing", "pulls", "readme", "search", "security", "settings",
    "signup", "site", "sponsors", "team", "topics", "trending", "users",
}

# search engines, Q&A sites and social networks other than the two we evaluate
EXCLUDED_HOSTS = (
    "google.", "bing.com", "duckduckgo.com", "yahoo.com", "baidu.com",
    "stackoverflow.com", "stackexchange.com", "quora.com", "superuser.com",
    "facebook.com", "fb.com", "twitter.com", "x.com", "instagram.com", "tiktok.com",
    "reddit.com", "youtube.com", "pinterest.com", "snapchat.com", "t.me", "wa.me",
)

PORTFOLIO_KEYWORDS = (
    "portfolio", "blog", "medium.com", "dev.to", "hashnode", "substack", "github.io",
    "netlify.app", "vercel.app", "wordpress", "about.me", "behance.net", "dribbble.com",
)

_GITHUB_LABEL_PATTERNS = [
    re.compile(r"\bgithub\s*(?:profile)?\s*:\s*@?([A-Za-z0-9-]+)(?![\w/@-]|\.\w)", flags=re.IGNORECASE),
    re.compile(r"(?<![\w/.@-])(?:www\.)?github\.com/([A-Za-z0-9-]+)(?![\w-])", flags=re.IGNORECASE),
]
_LINKEDIN_LABEL_PATTERNS = [
    re.compile(r"\blinked\s?in\s*(?:profile)?\s*:\s*@?([A-Za-z0-9-]+)(?![\w/@-]|\.\w)", flags=re.IGNORECASE),
    re.compile(r"(?<![\w/.@-])(?:[a-z]{2,3}\.)?linkedin\.com/(?:in|pub)/([A-Za-z0-9-]+)", flags=re.IGNORECASE),
]
# words that introduce a field rather than name a handle
LABEL_WORDS = {"github", "linkedin", "portfolio", "website", "blog", "email", "e-mail", "mail", "phone", "profile"}

_PORTFOLIO_LABEL_PATTERNS = [
    re.compile(r"\b(?:portfolio|website|blog)\s*:\s*((?:https?://)?[A-Za-z0-9][A-Za-z0-9.-]*\.[A-Za-z]{2,}(?:/[^\s,;]*)?)",
               flags=re.IGNORECASE),
]


def add_scheme(url: str) -> str:
    if not url:
        return ""
    if not re.match(r"^https?://", url, flags=re.I):
        return "https://" + url.lstrip("/")
    return url


def _valid_handle(handle: str, max_len: int) -> bool:
    if not handle or len(handle) > max_len:
        return False
    if not _HANDLE_RE.match(handle):
        return False
    if handle.startswith("-") or handle.endswith("-") or "--" in handle:
        return False
    return True


def validate_github_handle(handle: str | None) -> bool:
    return bool(handle) and _valid_handle(handle, GITHUB_HANDLE_MAX) and handle.lower() not in RESERVED_SEGMENTS


def validate_linkedin_handle(handle: str | None) -> bool:
    return bool(handle) and _valid_handle(handle, LINKEDIN_HANDLE_MAX)


def github_profile_url(handle: str) -> str:
    return f"https://github.com/{handle}"


def linkedin_profile_url(handle: str) -> str:
    return f"https://www.linkedin.com/in/{handle}"


def _host_and_segments(url: str) -> tuple[str, list[str]] | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    if not host or "." not in host or host.startswith(".") or host.endswith("."):
        return None
    if host.startswith("www."):
        host = host[4:]
    segs = [s for s in parsed.path.split("/") if s]
    return host, segs


def parse_github_handle(url: str | None) -> str | None:
    """github.com/<user> (exactly one path segment) -> user, else None."""
    hs = _host_and_segments(add_scheme(url or ""))
    if not hs:
        return None
    host, segs = hs
    if host != "github.com" or len(segs) != 1:
        return None
    return segs[0] if validate_github_handle(segs[0]) else None


def parse_linkedin_handle(url: str | None) -> str | None:
    hs = _host_and_segments(add_scheme(url or ""))
    if not hs:
        return None
    host, segs = hs
    if not (host == "linkedin.com" or host.endswith(".linkedin.com")):
        return None
    if len(segs) >= 2 and segs[0].lower() in ("in", "pub"):
        return segs[1] if validate_linkedin_handle(segs[1]) else None
    return None


def _is_excluded(host: str) -> bool:
    for h in EXCLUDED_HOSTS:
        if h.endswith("."):
            if host.startswith(h) or f".{h}" in host:
                return True
        elif host == h or host.endswith("." + h):
            return True
    return False


def _classify(url: str) -> tuple[str, str] | None:
    """-> (category, normalized_url) or None when the URL is malformed/excluded."""
    hs = _host_and_segments(url)
    if not hs:
        return None
    host, segs = hs
    if host == "github.com":
        handle = parse_github_handle(url)
        if handle:
            return "github", github_profile_url(handle)
        return "other:github", url
    if host == "linkedin.com" or host.endswith(".linkedin.com"):
        handle = parse_linkedin_handle(url)
        if handle:
            return "linkedin", linkedin_profile_url(handle)
        return "other:linkedin", url
    if _is_excluded(host):
        return None
    lowered = host + "/" + "/".join(segs).lower()
    if any(k in lowered for k in PORTFOLIO_KEYWORDS):
        return "portfolio", url
    return "website", url


def _scan_urls(text: str) -> list[str]:
    out = []
    for m in _URL_RE.finditer(text):
        url = m.group(0).rstrip(_TRAILING)
        if url:
            out.append(url)
    return out


def _labelled_handle(text: str, patterns, validate) -> str | None:
    for pat in patterns:
        for m in pat.finditer(text):
            handle = m.group(1)
            if handle.lower() not in LABEL_WORDS and validate(handle):
                return handle
    return None


def extract_links(text: str | None) -> CandidateLinks:
    text = text or ""
    found: dict[str, str] = {}
    other: list[OtherLink] = []
    seen_other: set[str] = set()

    def _push_other(url: str, kind: str):
        if url not in seen_other:
            seen_other.add(url)
            other.append(OtherLink(url=url, type=kind))

    for url in _scan_urls(text):
        res = _classify(url)
        if res is None:
            continue
        category, norm = res
        if category.startswith("other:"):
            _push_other(norm, category.split(":", 1)[1])
            continue
        if category not in found:
            found[category] = norm
        elif found[category] != norm:
            if category in ("github", "linkedin"):
                # a second identity on the same platform is not another category
                continue
            _push_other(norm, _host_and_segments(norm)[0])

    if "github" not in found:
        handle = _labelled_handle(text, _GITHUB_LABEL_PATTERNS, validate_github_handle)
        if handle:
            found["github"] = github_profile_url(handle)
    if "linkedin" not in found:
        handle = _labelled_handle(text, _LINKEDIN_LABEL_PATTERNS, validate_linkedin_handle)
        if handle:
            found["linkedin"] = linkedin_profile_url(handle)
    if "portfolio" not in found:
        for pat in _PORTFOLIO_LABEL_PATTERNS:
            m = pat.search(text)
            if not m:
                continue
            url = add_scheme(m.group(1).rstrip(_TRAILING))
            res = _classify(url)
            if res and res[0] in ("portfolio", "website") and url not in found.values():
                found["portfolio"] = url
                break

    return CandidateLinks(
        github=found.get("github"),
        linkedin=found.get("linkedin"),
        portfolio=found.get("portfolio"),
        website=found.get("website"),
        other=other,
    )
