"""Slug helpers shared by the resolver and the export layer."""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ``text`` and join its alphanumeric runs with single hyphens.

    >>> slugify("  My First Note! ")
    'my-first-note'
    """
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def title_from_slug(slug: str) -> str:
    """Turn a kebab-case file name into a display title.

    >>> title_from_slug("getting-started")
    'Getting Started'
    """
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-"))
