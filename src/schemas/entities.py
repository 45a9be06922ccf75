# Shapes for everything that enters or leaves the engine. Upstream JSON (GitHub, the LLM,
# supplied profiles) is normalized into these before any scoring happens.

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal
from datetime import date, datetime

from src.schemas.errors import ErrorReport

Severity = Literal["critical", "moderate", "minor"]
IndicatorCategory = Literal["technical", "professional", "collaboration"]
Priority = Literal["high", "medium", "low"]
Complexity = Literal["beginner", "intermediate", "advanced", "expert"]
DemoType = Literal["demo", "video", "documentation", "live_site", "github_pages"]
Impact = Literal["positive", "negative", "neutral"]
InconsistencyCategory = Literal["experience", "education", "skills", "personal", "timeline"]
Recommendation = Literal["strong_hire", "hire", "maybe", "no_hire"]

# closed-set defaults used when upstream data is out of range
ENUM_DEFAULTS = {
    "severity": ("minor", ("critical", "moderate", "minor")),
    "category": ("technical", ("technical", "professional", "collaboration")),
    "priority": ("medium", ("high", "medium", "low")),
    "complexity": ("intermediate", ("beginner", "intermediate", "advanced", "expert")),
    "demo_type": ("demo", ("demo", "video", "documentation", "live_site", "github_pages")),
    "impact": ("neutral", ("positive", "negative", "neutral")),
    "inconsistency_category": ("experience", ("experience", "education", "skills", "personal", "timeline")),
}

COMPLEXITY_ORDER = {"beginner": 0, "intermediate": 1, "advanced": 2, "expert": 3}
VERDICT_ORDER = {"strong_hire": 3, "hire": 2, "maybe": 1, "no_hire": 0}


def normalize_enum(kind: str, value) -> str:
    default, allowed = ENUM_DEFAULTS[kind]
    v = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    return v if v in allowed else default


class OtherLink(BaseModel):
    url: str
    type: str


class CandidateLinks(BaseModel):
    """identity links found in the résumé, at most one per known category."""
    model_config = ConfigDict(frozen=True)

    github: Optional[str] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None
    website: Optional[str] = None
    other: List[OtherLink] = []


class JobDescription(BaseModel):
    title: str
    requirements: List[str] = []
    skills: List[str] = []
    experience: str = ""
    company: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class CodeHostProfile(BaseModel):
    """public GitHub user profile."""
    login: str
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    blog: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RepositorySummary(BaseModel):
    """one entry of the repository listing, as the platform returned it."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    html_url: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    stargazers_count: int = 0
    forks_count: int = 0
    size: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    topics: List[str] = []
    homepage: Optional[str] = None
    has_pages: bool = False
    fork: bool = False
    archived: bool = False


class CommitPattern(BaseModel):
    total_commits: int = 0
    commits_this_year: int = 0
    commits_last_month: int = 0
    consistency_score: int = Field(0, ge=0, le=100)
    batch_commit_dates: List[date] = []


class RepositoryDetail(RepositorySummary):
    owner: str = ""
    readme_text: str = ""
    contributors_count: int = 1
    license: Optional[str] = None
    commit_pattern: CommitPattern = CommitPattern()

    @classmethod
    def from_summary(cls, owner: str, summary: RepositorySummary, **extra) -> "RepositoryDetail":
        return cls(owner=owner, **summary.model_dump(), **extra)


class DemoLink(BaseModel):
    type: DemoType = "demo"
    url: str
    description: str = ""
    working: bool = True
    hiring_impact: Impact = "positive"


class CodeQuality(BaseModel):
    naming_score: float = Field(0.0, ge=0, le=100)
    comments_score: float = Field(0.0, ge=0, le=100)
    structure_score: float = Field(0.0, ge=0, le=100)
    ai_usage_percentage: float = Field(0.0, ge=0, le=100)
    overall_score: float = Field(0.0, ge=0, le=100)
    professional_readme: bool = False
    has_tests: bool = False
    follows_conventions: bool = False
    confidence: float = Field(0.0, ge=0, le=100)


class RedFlag(BaseModel):
    severity: Severity = "minor"
    description: str
    evidence: str = ""


class PositiveIndicator(BaseModel):
    category: IndicatorCategory = "technical"
    description: str
    evidence: str = ""


class ActionItem(BaseModel):
    action: str
    priority: Priority = "medium"


class CollaborationEvidence(BaseModel):
    is_group_project: bool = False
    evidence: str = ""
    individual_contribution_clarity: float = Field(50.0, ge=0, le=100)


class ProjectAnalysis(BaseModel):
    """qualitative judgement for one repository (LLM-backed or fallback)."""
    name: str
    html_url: str = ""
    created_at: Optional[datetime] = None
    resume_mentioned: bool = False
    resume_evidence: str = ""
    completeness_score: float = Field(0.0, ge=0, le=100)
    demo_links: List[DemoLink] = []
    code_quality: CodeQuality = CodeQuality()
    red_flags: List[RedFlag] = []
    positive_indicators: List[PositiveIndicator] = []
    recommendations: List[ActionItem] = []
    project_highlights: List[str] = []
    technologies_detected: List[str] = []
    project_complexity: Complexity = "intermediate"
    estimated_time_investment: str = ""
    collaboration_evidence: CollaborationEvidence = CollaborationEvidence()
    commit_pattern: CommitPattern = CommitPattern()
    is_fallback: bool = False


class RepoCounts(BaseModel):
    total: int = 0
    active: int = 0
    original: int = 0
    forked: int = 0


class AggregateProfile(BaseModel):
    """derived scores; build a new one instead of mutating."""
    model_config = ConfigDict(frozen=True)

    technical_score: int = Field(0, ge=0, le=100)
    activity_score: int = Field(0, ge=0, le=100)
    authenticity_score: int = Field(0, ge=0, le=100)

    @property
    def average(self) -> float:
        return (self.technical_score + self.activity_score + self.authenticity_score) / 3


class Verdict(BaseModel):
    recommendation: Recommendation
    confidence: int = Field(ge=0, le=100)
    reasoning: List[str] = Field(min_length=1)


class FlagReport(BaseModel):
    red_flags: List[str] = []
    positive_indicators: List[str] = []


class OverallMetrics(BaseModel):
    total_repos: int = 0
    active_repos: int = 0
    analyzed_repos: int = 0
    resume_matched_repos: int = 0
    average_code_quality: float = 0.0
    commit_consistency: float = 0.0
    collaboration_score: float = 0.0
    original_projects: int = 0
    forked_projects: int = 0
    project_diversity_score: float = 0.0
    fallback_analyses: int = 0


class GitHubAnalysis(BaseModel):
    """everything the code-host branch produces for one candidate."""
    profile: CodeHostProfile
    repository_analysis: List[ProjectAnalysis] = []
    overall_metrics: OverallMetrics = OverallMetrics()
    red_flags: List[str] = []
    positive_indicators: List[str] = []
    technical_score: int = 0
    activity_score: int = 0
    authenticity_score: int = 0
    recommendations: List[str] = []
    hiring_verdict: Verdict
    chain_of_thought: List[str] = []


class ExperienceEntry(BaseModel):
    title: str = ""
    company: str = ""
    start_year: Optional[int] = None
    end_year: Optional[int] = None  # None == current role
    description: str = ""


class EducationEntry(BaseModel):
    institution: str = ""
    degree: str = ""
    field: str = ""
    start_year: Optional[int] = None
    end_year: Optional[int] = None


class NetworkProfile(BaseModel):
    """professional-network profile, either supplied by the caller or synthesized."""
    name: str = ""
    headline: str = ""
    title: str = ""
    company: str = ""
    location: str = ""
    summary: str = ""
    experience: List[ExperienceEntry] = []
    education: List[EducationEntry] = []
    skills: List[str] = []
    certifications: List[str] = []
    languages: List[str] = []
    connections: int = 0
    profile_picture: bool = False


class Inconsistency(BaseModel):
    severity: Severity
    category: InconsistencyCategory
    description: str
    resume_value: str = ""
    profile_value: str = ""
    impact: Impact = "negative"
    recommendation: str = ""


class LinkedInAnalysis(BaseModel):
    profile_url: str = ""
    data_accuracy: Literal["provided", "synthetic"] = "synthetic"
    profile_data: NetworkProfile
    inconsistencies: List[Inconsistency] = []
    verified_info: List[str] = []
    red_flags: List[str] = []
    positive_indicators: List[str] = []
    recommendations: List[str] = []
    honesty_score: int = Field(100, ge=0, le=100)
    profile_completeness: int = Field(0, ge=0, le=100)
    professional_score: int = Field(0, ge=0, le=100)
    chain_of_thought: List[str] = []


class CandidateReport(BaseModel):
    """both evidence branches side by side; a failed branch carries its error instead."""
    links: CandidateLinks
    github: Optional[GitHubAnalysis] = None
    github_error: Optional[ErrorReport] = None
    linkedin: Optional[LinkedInAnalysis] = None
    linkedin_error: Optional[ErrorReport] = None
