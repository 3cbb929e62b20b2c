"""Change reconciliation for Issuebook.

Bulk deletes run as SQL statements without loading records; the removed ids
are then merged into the session so no in-memory reference dangles.
Remote changes (writes by another process) only invalidate cached state and
notify subscribers: the database already holds the new data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Set, Type

from sqlalchemy import delete, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import SQLModel, col, select

from .errors import StoreUnavailable
from .logging_config import get_logger
from .models import Issue, IssueTagLink, Tag

if TYPE_CHECKING:
    from .store import EntityStore

logger = get_logger(__name__)

# kind -> (counterpart kind, mirror attribute on the counterpart)
_MIRRORS = {
    Issue: (Tag, "issues"),
    Tag: (Issue, "tags"),
}

_LINK_COLUMNS = {
    Issue: IssueTagLink.issue_id,
    Tag: IssueTagLink.tag_id,
}


def _record_id(record) -> str:
    # Read from the identity key: expired rows may already be gone from the DB
    state = inspect(record)
    if state.key is not None:
        return state.key[1][0]
    return record.__dict__.get("id")


class ChangeReconciler:
    def __init__(self, store: "EntityStore"):
        self.store = store

    def bulk_delete(self, kind: Type[SQLModel], *where) -> Set[str]:
        """Delete every record of kind matching where, straight in the database.

        Returns the ids actually removed; they are merged into the working set
        before returning. A storage failure yields an empty set.
        """
        if kind not in _MIRRORS:
            raise ValueError(f"Unsupported record kind: {kind!r}")

        store = self.store
        session = store.session
        with store.lock:
            try:
                # Pending inserts must reach the database to be matched
                session.flush()
                statement = select(kind.id)
                if where:
                    statement = statement.where(*where)
                removed = set(session.exec(statement).all())
                if removed:
                    session.exec(
                        delete(IssueTagLink)
                        .where(col(_LINK_COLUMNS[kind]).in_(removed))
                        .execution_options(synchronize_session=False)
                    )
                    session.exec(
                        delete(kind)
                        .where(col(kind.id).in_(removed))
                        .execution_options(synchronize_session=False)
                    )
                    store.mark_changed()
            except SQLAlchemyError as exc:
                logger.error(str(StoreUnavailable(f"bulk delete of {kind.__name__}", exc)))
                store.rollback()
                return set()

            logger.info(f"Bulk deleted {len(removed)} {kind.__name__.lower()} record(s)")
            self.merge_deleted({kind: removed})
            return removed

    def merge_deleted(self, changes: Mapping[Type[SQLModel], Iterable[str]]) -> None:
        """Drop deleted ids from the working set.

        Loaded mirror collections of the surviving counterparts are rewritten
        without recording history, so the next flush emits nothing for them.
        """
        store = self.store
        session = store.session
        with store.lock:
            for kind, ids in changes.items():
                ids = set(ids)
                if not ids:
                    continue
                counterpart, back_attr = _MIRRORS[kind]
                resident = list(session.identity_map.values())

                for record in resident:
                    if not isinstance(record, counterpart):
                        continue
                    if back_attr in inspect(record).unloaded:
                        continue
                    current = record.__dict__.get(back_attr, [])
                    kept = [r for r in current if _record_id(r) not in ids]
                    if len(kept) != len(current):
                        set_committed_value(record, back_attr, kept)

                for record in resident:
                    if isinstance(record, kind) and _record_id(record) in ids:
                        session.expunge(record)

    def delete_all(self) -> Dict[Type[SQLModel], Set[str]]:
        """Remove every tag and every issue, then save once both are gone."""
        store = self.store
        with store.lock:
            store.will_change("bulk_delete")
            removed = {
                Tag: self.bulk_delete(Tag),
                Issue: self.bulk_delete(Issue),
            }
            store.save()
        return removed

    def vanished_records(self) -> Dict[Type[SQLModel], Set[str]]:
        """Ids of resident records that no longer exist in the database."""
        session = self.store.session
        resident: Dict[Type[SQLModel], Set[str]] = {kind: set() for kind in _MIRRORS}
        for record in list(session.identity_map.values()):
            kind = type(record)
            if kind in resident and record not in session.deleted:
                resident[kind].add(_record_id(record))

        gone: Dict[Type[SQLModel], Set[str]] = {}
        # Dirty rows that were deleted elsewhere must not be flushed first
        with session.no_autoflush:
            for kind, ids in resident.items():
                if not ids:
                    continue
                present = set(session.exec(select(kind.id).where(col(kind.id).in_(ids))).all())
                if ids - present:
                    gone[kind] = ids - present
        return gone

    def remote_store_changed(self) -> None:
        """Another process wrote to the database: drop what it deleted,
        invalidate the rest and notify.
        """
        store = self.store
        with store.lock:
            try:
                gone = self.vanished_records()
            except SQLAlchemyError as exc:
                logger.warning(str(StoreUnavailable("remote change check", exc)))
                gone = {}
            if gone:
                logger.info(
                    f"Dropping {sum(len(ids) for ids in gone.values())} record(s) deleted remotely"
                )
                self.merge_deleted(gone)
            store.expire_clean()
            store.will_change("remote")
        logger.debug("Remote store change published")
