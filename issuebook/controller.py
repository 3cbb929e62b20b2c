"""The Issuebook coordinator.

Owns the query state and selection, wires the entity store to the save
scheduler and exposes the operations UI-level collaborators call.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from sqlmodel import SQLModel

from .config import IssuebookConfig
from .database import init_db, make_engine
from .filters import Filter, tag_filters
from .logging_config import get_logger
from .models import Issue, IssueUpdate, Priority, Tag, utcnow
from .monitor import RemoteMonitor, start_remote_monitoring
from .query import ANY_PRIORITY, QueryState, SortType, Status, issues_for
from .scheduler import SaveScheduler
from .store import ChangeNotice, EntityStore
from .tags import missing_tags, suggested_tokens

logger = get_logger(__name__)

Listener = Callable[[ChangeNotice], None]


class Issuebook:
    """Single owner of query state; everything else observes it via subscribe()."""

    def __init__(
        self,
        store: EntityStore,
        config: Optional[IssuebookConfig] = None,
        scheduler: Optional[SaveScheduler] = None,
    ):
        self.config = config or IssuebookConfig()
        self.store = store
        self.reconciler = store.reconciler
        self.scheduler = scheduler or SaveScheduler(
            store.save, delay=self.config.autosave.delay_seconds
        )
        self.state = QueryState()
        self.selected_filter: Optional[Filter] = Filter.ALL
        self.selected_issue: Optional[Issue] = None
        self.monitor: Optional[RemoteMonitor] = None
        self._listeners: List[Listener] = []
        self._closed = False
        store.subscribe(self._on_store_change)

    @classmethod
    def open(cls, config: IssuebookConfig, monitor: Optional[bool] = None) -> "Issuebook":
        """Build engine, schema, store and scheduler from config.

        Raises if the database cannot be opened at all; that is the host's
        call to make.
        """
        engine = make_engine(config.database_path)
        init_db(engine)
        book = cls(EntityStore(engine), config)
        if monitor is None:
            monitor = config.monitoring.enabled
        if monitor:
            book.monitor = start_remote_monitoring(config, book.store)
        return book

    def __enter__(self) -> "Issuebook":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Observation ---

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, notice: ChangeNotice) -> None:
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception(f"Listener {listener!r} failed on {notice.action}")

    def _on_store_change(self, notice: ChangeNotice) -> None:
        if notice.action == "edit":
            self.scheduler.queue_save()
        elif notice.action == "delete" and notice.record is not None:
            if self.selected_issue is not None and notice.record is self.selected_issue:
                self.selected_issue = None
        elif notice.action == "bulk_delete":
            self.selected_issue = None
        self._publish(notice)

    # --- Query state ---

    def select_filter(self, flt: Optional[Filter]) -> None:
        self.selected_filter = flt
        self._publish(ChangeNotice("state"))

    def set_filter_text(self, text: str) -> None:
        self.state.filter_text = text
        self._publish(ChangeNotice("state"))

    def set_filter_tokens(self, tags: Iterable[Tag]) -> None:
        self.state.filter_tokens = list(tags)
        self._publish(ChangeNotice("state"))

    def set_advanced_filters(
        self,
        enabled: bool,
        priority: int = ANY_PRIORITY,
        status: Status = Status.ALL,
    ) -> None:
        if priority != ANY_PRIORITY and priority not in set(Priority):
            raise ValueError(f"Unknown priority: {priority}")
        self.state.filter_enabled = enabled
        self.state.filter_priority = int(priority)
        self.state.filter_status = Status(status)
        self._publish(ChangeNotice("state"))

    def set_sort(self, sort_type: SortType, newest_first: bool = True) -> None:
        self.state.sort_type = SortType(sort_type)
        self.state.sort_newest_first = newest_first
        self._publish(ChangeNotice("state"))

    # --- Reads ---

    def issues_for_selected_filter(self) -> List[Issue]:
        return issues_for(self.store, self.state, self.selected_filter)

    def all_tags(self) -> List[Tag]:
        return self.store.fetch(Tag)

    def suggested_tokens(self) -> List[Tag]:
        return suggested_tokens(self.state.filter_text, self.all_tags())

    def missing_tags(self, issue: Issue) -> List[Tag]:
        return missing_tags(issue, self.all_tags())

    def filters(self) -> List[Filter]:
        """Sidebar filters: all, recent, then one per tag."""
        recent = Filter.recent(self.config.filters.recent_days)
        return [Filter.ALL, recent, *tag_filters(self.all_tags())]

    # --- Writes ---

    def new_issue(self) -> Issue:
        """Create an issue in the current tag scope and select it."""
        issue = self.store.new_issue(
            title="New Issue",
            creation_date=utcnow(),
            priority=int(Priority.MEDIUM),
        )
        tag = self.selected_filter.tag if self.selected_filter else None
        if tag is not None:
            self.store.add_tag(issue, tag)
        self.save()
        self.selected_issue = issue
        return issue

    def new_tag(self, name: str = "New Tag") -> Tag:
        tag = self.store.new_tag(name=name)
        self.save()
        return tag

    def update_issue(self, issue: Issue, payload: IssueUpdate) -> Issue:
        return self.store.update_issue(issue, payload)

    def add_tag(self, issue: Issue, tag: Tag) -> bool:
        return self.store.add_tag(issue, tag)

    def remove_tag(self, issue: Issue, tag: Tag) -> bool:
        return self.store.remove_tag(issue, tag)

    def toggle_completed(self, issue: Issue) -> bool:
        issue.completed = not issue.completed
        self.save()
        return issue.completed

    def delete(self, record: SQLModel) -> None:
        self.store.delete(record)
        self.save()

    def delete_all(self) -> None:
        self.store.delete_all()

    # --- Persistence ---

    def queue_save(self) -> None:
        self.scheduler.queue_save()

    def save(self) -> bool:
        saved = self.store.save()
        if not self.store.has_changes:
            # Everything is on disk; a queued flush would be a no-op
            self.scheduler.cancel()
        return saved

    def remote_store_changed(self) -> None:
        self.reconciler.remote_store_changed()

    def close(self) -> None:
        """Flush synchronously and release resources. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.flush_now()
        if self.monitor is not None:
            self.monitor.stop()
            self.monitor = None
        self.store.close()
