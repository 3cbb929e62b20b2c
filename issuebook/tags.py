"""Tag suggestions for the search field and the per-issue 'add tag' menu."""

from __future__ import annotations

from typing import Iterable, List

from .models import Issue, Tag

TOKEN_DELIMITER = "#"


def suggested_tokens(free_text: str, all_tags: Iterable[Tag]) -> List[Tag]:
    """Tags to offer as search tokens while the user types '#name'.

    Text not starting with '#' gets no suggestions; a bare '#' gets every tag.
    """
    if not free_text.startswith(TOKEN_DELIMITER):
        return []

    needle = free_text[len(TOKEN_DELIMITER):].strip().casefold()
    if not needle:
        return sorted(all_tags)
    return sorted(tag for tag in all_tags if needle in (tag.name or "").casefold())


def missing_tags(issue: Issue, all_tags: Iterable[Tag]) -> List[Tag]:
    """Tags the issue does not carry yet, in natural order.

    Plain difference: a tag present only on the issue is never offered.
    """
    return sorted(set(all_tags) - set(issue.tags))
