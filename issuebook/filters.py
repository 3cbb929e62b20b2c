"""Filter descriptors: named views selecting a base scope for issue queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import ClassVar, Iterable, List, Optional

from .models import FAR_PAST, Tag, utcnow

ALL_FILTER_ID = "all"
RECENT_FILTER_ID = "recent"
DEFAULT_RECENT_DAYS = 7


@dataclass(frozen=True, eq=False)
class Filter:
    """Immutable view descriptor. Two filters are equal iff their ids match.

    A filter bound to a tag scopes to that tag's issues; otherwise it keeps
    issues modified after min_modification_date (FAR_PAST: no threshold).
    """

    id: str
    name: str
    icon: str
    min_modification_date: datetime = FAR_PAST
    tag: Optional[Tag] = None

    ALL: ClassVar["Filter"]

    def __eq__(self, other):
        if not isinstance(other, Filter):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def active_issues_count(self) -> int:
        if self.tag is None:
            return 0
        return len(self.tag.active_issues)

    @classmethod
    def recent(cls, days: int = DEFAULT_RECENT_DAYS, now: Optional[datetime] = None) -> "Filter":
        """Issues modified within the last `days` days."""
        now = now or utcnow()
        return cls(
            id=RECENT_FILTER_ID,
            name="Recent Issues",
            icon="clock",
            min_modification_date=now - timedelta(days=days),
        )

    @classmethod
    def for_tag(cls, tag: Tag) -> "Filter":
        return cls(id=tag.id, name=tag.name, icon="tag", tag=tag)


Filter.ALL = Filter(id=ALL_FILTER_ID, name="All Issues", icon="tray")


def tag_filters(tags: Iterable[Tag]) -> List[Filter]:
    """One filter per tag, in natural tag order."""
    return [Filter.for_tag(tag) for tag in sorted(tags)]
