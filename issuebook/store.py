"""Entity store for Issuebook.

Owns the in-memory working set of issues and tags (one SQLModel session),
publishes will-change notices to subscribers and persists on demand.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, NamedTuple, Optional, Sequence, Type, TypeVar

from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from .errors import ConsistencyViolation, StoreUnavailable
from .logging_config import get_logger
from .models import STORE_KEY, Issue, IssueUpdate, Tag
from .reconcile import ChangeReconciler

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=SQLModel)


class ChangeNotice(NamedTuple):
    """Published before a mutation is applied.

    action is one of: insert, edit, delete, bulk_delete, remote.
    """

    action: str
    record: Optional[SQLModel] = None


Subscriber = Callable[[ChangeNotice], None]


class EntityStore:
    """Working set of Issue and Tag records backed by a SQLModel session.

    A single writer is assumed. Every session access holds ``lock`` so a
    reader never observes a half-applied write.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session = Session(engine, expire_on_commit=False)
        self.session.info[STORE_KEY] = self
        self.lock = threading.RLock()
        self._subscribers: List[Subscriber] = []
        self._commit_hooks: List[Callable[[], None]] = []
        self._pre_commit_hooks: List[Callable[[], None]] = []
        self._uncommitted = False
        self._quiet = 0
        event.listen(self.session, "after_flush", self._after_flush)
        self.reconciler = ChangeReconciler(self)

    # --- Notifications ---

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def will_change(self, action: str, record: Optional[SQLModel] = None) -> None:
        """Synchronously tell every subscriber that records are about to change."""
        if self._quiet and action == "edit":
            return
        notice = ChangeNotice(action, record)
        for callback in list(self._subscribers):
            try:
                callback(notice)
            except Exception:
                logger.exception(f"Change subscriber {callback!r} failed on {action}")

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Register a hook run after every successful commit."""
        self._commit_hooks.append(callback)

    def before_commit(self, callback: Callable[[], None]) -> None:
        """Register a hook run under the store lock just before every commit."""
        self._pre_commit_hooks.append(callback)

    @contextmanager
    def _quietly(self) -> Iterator[None]:
        # Suppress per-field edit notices while the store rewires relationships
        self._quiet += 1
        try:
            yield
        finally:
            self._quiet -= 1

    # --- Records ---

    def create(self, kind: Type[RecordT], **fields) -> RecordT:
        """Create a record with defaulted fields and register it."""
        with self.lock:
            record = kind(**fields)
            self.will_change("insert", record)
            self.session.add(record)
            return record

    def new_issue(self, **fields) -> Issue:
        return self.create(Issue, **fields)

    def new_tag(self, **fields) -> Tag:
        return self.create(Tag, **fields)

    def get(self, kind: Type[RecordT], record_id: str) -> Optional[RecordT]:
        with self.lock:
            try:
                return self.session.get(kind, record_id)
            except SQLAlchemyError as exc:
                self._report(StoreUnavailable("get", exc))
                return None

    def fetch(
        self,
        kind: Type[RecordT],
        *where,
        order_by: Sequence = (),
    ) -> List[RecordT]:
        """Return records of kind matching every clause in where.

        Pending in-memory changes are flushed first so they are visible.
        A storage failure yields an empty list.
        """
        with self.lock:
            statement = select(kind)
            if where:
                statement = statement.where(*where)
            if order_by:
                statement = statement.order_by(*order_by)
            try:
                return list(self.session.exec(statement).all())
            except SQLAlchemyError as exc:
                self._report(StoreUnavailable("fetch", exc))
                return []

    def delete(self, record: SQLModel) -> None:
        """Remove a single record and its mirrored relationship entries.

        Callers flush afterwards with save().
        """
        with self.lock:
            state = inspect(record)
            if state.transient or state.deleted or state.was_deleted or state.detached:
                return
            self.will_change("delete", record)
            with self._quietly():
                if isinstance(record, Issue):
                    for tag in list(record.tags):
                        record.tags.remove(tag)
                elif isinstance(record, Tag):
                    for issue in list(record.issues):
                        record.issues.remove(issue)
                if state.pending:
                    self.session.expunge(record)
                else:
                    self.session.delete(record)

    def delete_all(self) -> None:
        """Bulk-delete every tag and issue, then save once."""
        self.reconciler.delete_all()

    def is_deleted(self, record: SQLModel) -> bool:
        state = inspect(record)
        return bool(state.deleted or state.was_deleted or state.detached)

    # --- Relationship management ---

    def add_tag(self, issue: Issue, tag: Tag) -> bool:
        """Attach tag to issue; both sides of the mirror update together."""
        with self.lock:
            if tag in issue.tags:
                return False
            issue.tags.append(tag)
            return True

    def remove_tag(self, issue: Issue, tag: Tag) -> bool:
        """Detach tag from issue; both sides of the mirror update together."""
        with self.lock:
            if tag not in issue.tags:
                return False
            issue.tags.remove(tag)
            return True

    def update_issue(self, issue: Issue, payload: IssueUpdate) -> Issue:
        """Apply the non-None fields of payload to issue."""
        with self.lock:
            for key, value in payload.model_dump(exclude_none=True).items():
                setattr(issue, key, value)
            return issue

    def check_mirrors(self) -> None:
        """Raise ConsistencyViolation if any loaded issue/tag pair disagrees."""
        with self.lock:
            for record in list(self.session.identity_map.values()) + list(self.session.new):
                unloaded = inspect(record).unloaded
                if isinstance(record, Issue) and "tags" not in unloaded:
                    for tag in record.tags:
                        if record not in tag.issues:
                            raise ConsistencyViolation(
                                f"Tag {tag.id} does not list issue {record.id}"
                            )
                elif isinstance(record, Tag) and "issues" not in unloaded:
                    for issue in record.issues:
                        if record not in issue.tags:
                            raise ConsistencyViolation(
                                f"Issue {issue.id} does not list tag {record.id}"
                            )

    # --- Persistence ---

    @property
    def has_changes(self) -> bool:
        """True if anything is waiting to be committed."""
        with self.lock:
            session = self.session
            if session.new or session.deleted:
                return True
            if any(session.is_modified(record) for record in session.dirty):
                return True
            return self._uncommitted

    def mark_changed(self) -> None:
        """Record that statements ran outside the unit of work (bulk deletes)."""
        self._uncommitted = True

    def save(self) -> bool:
        """Commit pending changes. No-op (returns False) when nothing changed.

        Never raises: a storage failure is logged and the transaction rolled back.
        """
        with self.lock:
            if not self.has_changes:
                return False
            self._run_hooks(self._pre_commit_hooks)
            try:
                self.session.commit()
            except SQLAlchemyError as exc:
                self._report(StoreUnavailable("save", exc))
                return False
            self._uncommitted = False
            logger.debug("Store saved")
            self._run_hooks(self._commit_hooks)
        return True

    def _run_hooks(self, hooks: List[Callable[[], None]]) -> None:
        for hook in list(hooks):
            try:
                hook()
            except Exception:
                logger.exception(f"Commit hook {hook!r} failed")

    def rollback(self) -> None:
        with self.lock:
            self.session.rollback()
            self._uncommitted = False

    def expire_clean(self) -> None:
        """Drop cached state of unmodified records so the next read hits the DB."""
        with self.lock:
            for record in list(self.session.identity_map.values()):
                if record in self.session.deleted or self.session.is_modified(record):
                    continue
                self.session.expire(record)

    def close(self) -> None:
        with self.lock:
            self.session.close()

    def _after_flush(self, session, flush_context) -> None:
        self._uncommitted = True

    def _report(self, error: StoreUnavailable) -> None:
        logger.warning(str(error))
        if not self.session.is_active or error.operation == "save":
            self.rollback()
