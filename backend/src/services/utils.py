"""Shared utility functions for service layer."""
import re

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-{2,}")


def generate_slug(name: str) -> str:
    """
    Derive a URL slug from a display name.

    Lowercases, turns spaces into hyphens, drops anything that isn't a-z, 0-9 or
    a hyphen, collapses repeated hyphens and trims them from the ends.

    >>> generate_slug("  Web Development & Design ")
    'web-development-design'
    """
    slug = name.strip().lower().replace(" ", "-")
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _HYPHEN_RUNS.sub("-", slug)
    return slug.strip("-")
