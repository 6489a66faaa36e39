"""Deterministic text analysis feeding the baseline score and agent prompts."""

import re
from dataclasses import dataclass, field

from jobscout.utils.dedup import extract_keywords

ACTION_VERBS = frozenset(
    {
        "achieved",
        "architected",
        "automated",
        "built",
        "created",
        "delivered",
        "designed",
        "developed",
        "drove",
        "engineered",
        "established",
        "implemented",
        "improved",
        "increased",
        "launched",
        "led",
        "managed",
        "mentored",
        "migrated",
        "optimized",
        "owned",
        "reduced",
        "refactored",
        "scaled",
        "shipped",
        "spearheaded",
        "streamlined",
    }
)

# Words too common in postings to count as keywords.
FILLER_WORDS = frozenset(
    {
        "and",
        "are",
        "for",
        "from",
        "has",
        "have",
        "our",
        "will",
        "with",
        "you",
        "your",
        "this",
        "that",
        "who",
        "all",
        "work",
        "team",
        "role",
        "years",
        "year",
        "experience",
        "job",
        "title",
        "location",
        "description",
        "about",
        "must",
        "can",
        "into",
        "not",
        "but",
        "they",
        "their",
        "what",
        "looking",
        "join",
        "including",
        "such",
        "etc",
        "required",
        "preferred",
        "strong",
        "ability",
        "using",
        "skills",
    }
)

_QUANTIFIED_PATTERNS = [
    re.compile(r"\d+%"),
    re.compile(r"\$[\d,]+[KMB]?"),
    re.compile(r"\d+\+?\s*(?:years?|months?|weeks?)", re.IGNORECASE),
    re.compile(
        r"(?:increased|decreased|improved|reduced|grew|boosted)\s+by\s+\d+",
        re.IGNORECASE,
    ),
    re.compile(r"\d+x\s+(?:faster|better|more)", re.IGNORECASE),
    re.compile(r"team\s+of\s+\d+", re.IGNORECASE),
    re.compile(r"\d+\s+(?:clients?|customers?|users?|projects?)", re.IGNORECASE),
]

_CANDIDATE_YEARS_PATTERNS = [
    re.compile(r"(\d+)\+?\s*years?\s+(?:of\s+)?experience", re.IGNORECASE),
    re.compile(r"experience[:\s]+(\d+)\+?\s*years?", re.IGNORECASE),
    re.compile(r"(\d+)\s*-\s*(\d+)\s*years", re.IGNORECASE),
]

_REQUIRED_YEARS_PATTERNS = [
    re.compile(
        r"(\d+)\+?\s*years?\s+(?:of\s+)?(?:experience\s+)?required", re.IGNORECASE
    ),
    re.compile(r"minimum\s+(\d+)\+?\s*years?", re.IGNORECASE),
    re.compile(r"at\s+least\s+(\d+)\+?\s*years?", re.IGNORECASE),
    re.compile(r"(\d+)\+?\s*years?\s+(?:of\s+)?experience", re.IGNORECASE),
]

_EMPLOYMENT_SPAN = re.compile(r"\b(20\d{2})\s*-\s*(20\d{2}|present|current)", re.IGNORECASE)
_BULLET_PREFIXES = ("•", "-", "*")


def significant_keywords(text: str) -> set[str]:
    """Distinct keywords of a text, without stop words or filler."""
    return {
        token
        for token in extract_keywords(text)
        if token not in FILLER_WORDS and not token.isdigit()
    }


@dataclass
class KeywordOverlap:
    matched: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.missing)

    @property
    def percent(self) -> float:
        return 100 * len(self.matched) / self.total if self.total else 0.0


def keyword_overlap(resume_text: str, job_text: str) -> KeywordOverlap:
    """Which job keywords appear in the resume."""
    resume_keywords = significant_keywords(resume_text)
    job_keywords = sorted(significant_keywords(job_text))
    return KeywordOverlap(
        matched=[k for k in job_keywords if k in resume_keywords],
        missing=[k for k in job_keywords if k not in resume_keywords],
    )


def extract_years_of_experience(resume_text: str) -> int:
    for pattern in _CANDIDATE_YEARS_PATTERNS:
        match = pattern.search(resume_text)
        if match:
            return int(match.group(1))

    # Rough estimate from employment date ranges.
    spans = _EMPLOYMENT_SPAN.findall(resume_text)
    if spans:
        return min(len(spans) * 2, 15)
    return 0


def extract_required_years(job_text: str) -> int:
    for pattern in _REQUIRED_YEARS_PATTERNS:
        match = pattern.search(job_text)
        if match:
            return int(match.group(1))
    return 0


def quantified_achievements(text: str) -> list[str]:
    found: list[str] = []
    for pattern in _QUANTIFIED_PATTERNS:
        for match in pattern.findall(text):
            if match not in found:
                found.append(match)
    return found


def action_verbs(text: str) -> list[str]:
    words = re.findall(r"[a-z]+", text.lower())
    return sorted({word for word in words if word in ACTION_VERBS})


@dataclass
class FormattingStats:
    bullet_lines: int
    section_count: int

    @property
    def has_bullet_points(self) -> bool:
        return self.bullet_lines > 3


def analyze_formatting(text: str) -> FormattingStats:
    lines = [line.strip() for line in text.splitlines()]
    bullets = sum(1 for line in lines if line.startswith(_BULLET_PREFIXES))
    sections = sum(
        1
        for line in lines
        if line and (line.endswith(":") or (line.isupper() and any(c.isalpha() for c in line)))
    )
    return FormattingStats(bullet_lines=bullets, section_count=sections)


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


def quote_found(quote: str, *sources: str) -> bool:
    """True when a quoted span occurs in any source, ignoring case and spacing."""
    needle = _squash(quote.strip("\"'“”"))
    if len(needle) < 3:
        return False
    return any(needle in _squash(source) for source in sources if source)


@dataclass
class JobMatchToolData:
    overlap: KeywordOverlap
    candidate_years: int
    required_years: int


@dataclass
class ResumeToolData:
    keywords: list[str]
    achievements: list[str]
    verbs: list[str]
    formatting: FormattingStats


def analyze_job_match(resume_text: str, job_text: str) -> JobMatchToolData:
    return JobMatchToolData(
        overlap=keyword_overlap(resume_text, job_text),
        candidate_years=extract_years_of_experience(resume_text),
        required_years=extract_required_years(job_text),
    )


def analyze_resume(resume_text: str) -> ResumeToolData:
    return ResumeToolData(
        keywords=sorted(significant_keywords(resume_text)),
        achievements=quantified_achievements(resume_text),
        verbs=action_verbs(resume_text),
        formatting=analyze_formatting(resume_text),
    )
