"""Build and trim the texts handed to the agents."""

import html
import re

from jobscout.services.job_boards.base import RawPosting

OLLAMA_LIMITS = {"resume": 1500, "job": 1200}
CLOUD_LIMITS = {"resume": 4000, "job": 3500}

_TAG = re.compile(r"<[^>]+>")


def strip_html(text: str | None) -> str:
    if not text:
        return ""
    return html.unescape(_TAG.sub(" ", text))


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def build_job_text(
    title: str, company: str, location: str = "", description: str = ""
) -> str:
    return normalize_whitespace(
        f"Job Title: {title}\n"
        f"Company: {company}\n"
        f"Location: {location}\n"
        f"Description: {strip_html(description)}"
    )


def posting_to_text(posting: RawPosting) -> str:
    return build_job_text(
        posting.title, posting.company, posting.location, posting.description
    )


def truncate_for_model(text: str, kind: str, local: bool) -> str:
    """Cut text to the size limit for local or hosted models."""
    limit = (OLLAMA_LIMITS if local else CLOUD_LIMITS)[kind]
    if len(text) <= limit:
        return text
    return text[:limit].rsplit(" ", 1)[0] + " ..."
