"""SQLModel database models for Issuebook."""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import event
from sqlalchemy.orm import object_session
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# "No threshold" for date comparisons; aware like every stored timestamp
FAR_PAST = datetime.min.replace(tzinfo=timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Priority(enum.IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


class IssueTagLink(SQLModel, table=True):
    __tablename__ = "issue_tags"
    issue_id: Optional[str] = Field(
        default=None, foreign_key="issues.id", primary_key=True, ondelete="CASCADE"
    )
    tag_id: Optional[str] = Field(
        default=None, foreign_key="tags.id", primary_key=True, ondelete="CASCADE"
    )


class IssueBase(SQLModel):
    title: str = "New Issue"
    content: str = ""
    completed: bool = False
    priority: int = Field(default=int(Priority.MEDIUM))


class Issue(IssueBase, table=True):
    __tablename__ = "issues"
    id: str = Field(default_factory=_new_id, primary_key=True)
    creation_date: datetime = Field(default_factory=utcnow, index=True)
    modification_date: datetime = Field(default_factory=utcnow, index=True)

    # Relationships
    tags: List["Tag"] = Relationship(back_populates="issues", link_model=IssueTagLink)

    def __eq__(self, other):
        if not isinstance(other, Issue):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(("issue", self.id))

    def __setattr__(self, name, value):
        # SQLModel writes the raw value back after the attribute events run
        if name == "modification_date":
            value = _clamp_to_creation(self, value)
        super().__setattr__(name, value)

    def __lt__(self, other: "Issue") -> bool:
        return issue_sort_key(self) < issue_sort_key(other)

    @property
    def status_label(self) -> str:
        return "Closed" if self.completed else "Open"

    @property
    def tags_list(self) -> str:
        """Comma-separated tag names, or 'No tags'."""
        if not self.tags:
            return "No tags"
        return ", ".join(tag.name for tag in sorted(self.tags))


class TagBase(SQLModel):
    name: str = "New Tag"


class Tag(TagBase, table=True):
    __tablename__ = "tags"
    id: str = Field(default_factory=_new_id, primary_key=True)

    # Relationships
    issues: List[Issue] = Relationship(back_populates="tags", link_model=IssueTagLink)

    def __eq__(self, other):
        if not isinstance(other, Tag):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(("tag", self.id))

    def __lt__(self, other: "Tag") -> bool:
        return tag_sort_key(self) < tag_sort_key(other)

    @property
    def active_issues(self) -> List[Issue]:
        return [issue for issue in self.issues if not issue.completed]


class IssueUpdate(SQLModel):
    """Partial update payload for an issue: only non-None fields are applied."""

    title: Optional[str] = None
    content: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None


def issue_sort_key(issue: Issue) -> tuple:
    """Natural issue order: title (case-insensitive), creation date, id."""
    return ((issue.title or "").casefold(), issue.creation_date or FAR_PAST, issue.id)


def tag_sort_key(tag: Tag) -> tuple:
    """Natural tag order: name (case-insensitive), id."""
    return ((tag.name or "").casefold(), tag.id)


# ---------------------------------------------------------------------------
# Change tracking
#
# Attribute events keep modification_date current and forward "edit" notices
# to the store that owns the session (registered in session.info).
# ---------------------------------------------------------------------------

STORE_KEY = "issuebook.store"

_ISSUE_FIELDS = ("title", "content", "completed", "priority")


def _notify_store(record) -> None:
    session = object_session(record)
    if session is None:
        return
    store = session.info.get(STORE_KEY)
    if store is not None:
        store.will_change("edit", record)


def _touch(issue: Issue) -> None:
    now = utcnow()
    created = issue.__dict__.get("creation_date")
    if created is not None and created > now:
        now = created
    issue.modification_date = now


def _on_issue_field_set(target, value, oldvalue, initiator):
    if value == oldvalue:
        return
    _notify_store(target)
    _touch(target)


def _on_creation_date_set(target, value, oldvalue, initiator):
    _on_issue_field_set(target, value, oldvalue, initiator)
    # creation moved forward past the last stamp
    modified = target.__dict__.get("modification_date")
    if value is not None and modified is not None and modified < value:
        target.modification_date = value


def _clamp_to_creation(issue: Issue, value):
    created = issue.__dict__.get("creation_date")
    if value is not None and created is not None and value < created:
        return created
    return value


def _on_issue_tags_changed(target, value, initiator):
    _notify_store(target)
    _touch(target)
    return value


def _on_tag_issues_changed(target, value, initiator):
    _notify_store(target)
    _touch(value)
    return value


def _on_tag_name_set(target, value, oldvalue, initiator):
    if value != oldvalue:
        _notify_store(target)


for _name in _ISSUE_FIELDS:
    event.listen(getattr(Issue, _name), "set", _on_issue_field_set)
event.listen(Issue.creation_date, "set", _on_creation_date_set)
event.listen(Issue.tags, "append", _on_issue_tags_changed, retval=True)
event.listen(Issue.tags, "remove", _on_issue_tags_changed)
event.listen(Tag.issues, "append", _on_tag_issues_changed, retval=True)
event.listen(Tag.issues, "remove", _on_tag_issues_changed)
event.listen(Tag.name, "set", _on_tag_name_set)
