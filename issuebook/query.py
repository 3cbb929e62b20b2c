"""Predicate compilation: query state + filter -> SQL clauses -> ordered issues.

Every clause is ANDed. A clause that does not apply is left out entirely,
never replaced by a constant true.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from .filters import Filter
from .logging_config import get_logger
from .models import Issue, Tag, issue_sort_key

if TYPE_CHECKING:
    from .store import EntityStore

logger = get_logger(__name__)

ANY_PRIORITY = -1


class Status(str, enum.Enum):
    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"


class SortType(str, enum.Enum):
    """Sort keys; values are the Issue attribute names."""

    DATE_CREATED = "creation_date"
    DATE_MODIFIED = "modification_date"


@dataclass
class QueryState:
    """Transient query inputs, owned by the coordinator and never persisted."""

    filter_text: str = ""
    filter_tokens: List[Tag] = field(default_factory=list)
    filter_enabled: bool = False
    filter_priority: int = ANY_PRIORITY
    filter_status: Status = Status.ALL
    sort_type: SortType = SortType.DATE_CREATED
    sort_newest_first: bool = True


def has_tag(tag: Tag):
    """Clause: the issue carries tag."""
    return Issue.tags.any(col(Tag.id) == tag.id)


def compile_clauses(state: QueryState, flt: Optional[Filter] = None) -> list:
    flt = flt or Filter.ALL
    clauses = []

    # Scope
    if flt.tag is not None:
        clauses.append(has_tag(flt.tag))
    else:
        clauses.append(col(Issue.modification_date) > flt.min_modification_date)

    # Free text: title OR content
    text = state.filter_text.strip()
    if text:
        clauses.append(
            or_(
                col(Issue.title).icontains(text, autoescape=True),
                col(Issue.content).icontains(text, autoescape=True),
            )
        )

    # Every pinned token must be present
    for token in state.filter_tokens:
        clauses.append(has_tag(token))

    if state.filter_enabled:
        if state.filter_priority != ANY_PRIORITY:
            clauses.append(col(Issue.priority) == state.filter_priority)
        if state.filter_status is not Status.ALL:
            clauses.append(col(Issue.completed) == (state.filter_status is Status.CLOSED))

    return clauses


def sort_order(state: QueryState) -> list:
    column = col(getattr(Issue, state.sort_type.value))
    return [column.desc() if state.sort_newest_first else column.asc()]


def order_issues(issues: List[Issue], state: QueryState) -> List[Issue]:
    """Deterministic ordering: sort key first, natural issue order on ties.

    Both passes are stable sorts, so equal timestamps fall back to title, then
    creation date, then id.
    """
    ordered = sorted(issues, key=issue_sort_key)
    ordered.sort(
        key=lambda issue: getattr(issue, state.sort_type.value),
        reverse=state.sort_newest_first,
    )
    return ordered


def issues_for(
    store: "EntityStore",
    state: QueryState,
    flt: Optional[Filter] = None,
) -> List[Issue]:
    """Return the ordered issues matching state within flt (default: all issues).

    A storage failure yields an empty list.
    """
    try:
        clauses = compile_clauses(state, flt)
        issues = store.fetch(Issue, and_(*clauses), order_by=sort_order(state))
        return order_issues(issues, state)
    except SQLAlchemyError as exc:
        logger.warning(f"Issue query failed: {exc}")
        return []
