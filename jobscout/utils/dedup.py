"""Normalization helpers for deduplicating discovered postings."""

import re
from collections.abc import Iterable
from typing import Protocol, TypeVar
from urllib.parse import unquote_plus, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset(
    {
        "fbclid",
        "gclid",
        "msclkid",
        "ref",
        "source",
        "tk",
        "from",
        "vjk",
    }
)

STOP_WORDS = frozenset(
    {
        "senior",
        "jr",
        "junior",
        "sr",
        "inc",
        "llc",
        "ltd",
        "corp",
        "corporation",
        "the",
        "a",
        "an",
        "co",
        "company",
    }
)


def _is_tracking_param(name: str) -> bool:
    return name.startswith("utm_") or name in TRACKING_PARAMS


def normalize_url(url: str) -> str:
    """Strip tracking query parameters from a job URL.

    Path, fragment and every other query parameter are kept byte for byte,
    in their original order. Strings that are not absolute URLs are returned
    unchanged.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url

    kept = [
        pair
        for pair in parts.query.split("&")
        if pair and not _is_tracking_param(unquote_plus(pair.split("=", 1)[0]))
    ]
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, "&".join(kept), parts.fragment)
    )


def normalize_for_search(text: str) -> str:
    """Lowercase, dash-separated form used as a catalog lookup value."""
    value = re.sub(r"\s+", "-", text.lower().strip())
    return re.sub(r"[^a-z0-9-]", "", value)


def extract_keywords(text: str) -> list[str]:
    """Significant lowercase tokens of a title or company name."""
    tokens = re.split(r"[\s\-_,.]+", text.lower())
    return [token for token in tokens if len(token) > 2 and token not in STOP_WORDS]


def extract_city_name(location: str) -> str:
    """City part of a ``"City, Region"`` location string."""
    city, _, _ = location.partition(",")
    return city.strip().lower()


class HasUrl(Protocol):
    url: str


P = TypeVar("P", bound=HasUrl)


class Deduplicator:
    """Drops postings whose normalized URL the user already knows."""

    def filter(self, postings: Iterable[P], known_urls: set[str]) -> list[P]:
        return [
            posting
            for posting in postings
            if normalize_url(posting.url) not in known_urls
        ]

    @staticmethod
    def known_url_set(urls: Iterable[str]) -> set[str]:
        """Normalize stored URLs so they compare equal to fresh postings."""
        return {normalize_url(url) for url in urls if url}
