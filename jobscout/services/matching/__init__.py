"""Multi-agent resume matching and review."""

from jobscout.services.matching.job_match import collaborative_job_match
from jobscout.services.matching.progress import AgentStep, ProgressChannel, ProgressUpdate
from jobscout.services.matching.resume_review import collaborative_resume_review
from jobscout.services.matching.scorer import MatchScorer, SimpleMatchScorer

__all__ = [
    "AgentStep",
    "MatchScorer",
    "ProgressChannel",
    "ProgressUpdate",
    "SimpleMatchScorer",
    "collaborative_job_match",
    "collaborative_resume_review",
]
