"""Shared fixtures: in-memory stores and an issue factory."""

from datetime import datetime, timedelta
from typing import Iterable, Optional

import pytest

from issuebook.config import IssuebookConfig, MonitoringConfig, AutosaveConfig
from issuebook.controller import Issuebook
from issuebook.database import init_db, make_engine
from issuebook.models import Issue, Tag, utcnow
from issuebook.store import EntityStore


@pytest.fixture
def engine():
    engine = make_engine(None)
    init_db(engine)
    return engine


@pytest.fixture
def store(engine):
    store = EntityStore(engine)
    yield store
    store.close()


@pytest.fixture
def test_config():
    """Config with monitoring off and a short autosave window."""
    return IssuebookConfig(
        autosave=AutosaveConfig(delay_seconds=0.2),
        monitoring=MonitoringConfig(enabled=False),
    )


@pytest.fixture
def book(store, test_config):
    book = Issuebook(store, test_config)
    yield book
    book.close()


@pytest.fixture
def make_tag(store):
    def _make(name: str) -> Tag:
        return store.new_tag(name=name)

    return _make


@pytest.fixture
def make_issue(store):
    """Create an issue; explicit dates are applied after tagging."""

    def _make(
        title: str = "Issue",
        content: str = "",
        priority: int = 1,
        completed: bool = False,
        tags: Iterable[Tag] = (),
        created: Optional[datetime] = None,
        modified: Optional[datetime] = None,
    ) -> Issue:
        created = created or utcnow() - timedelta(hours=1)
        issue = store.new_issue(
            title=title,
            content=content,
            priority=priority,
            completed=completed,
            creation_date=created,
        )
        for tag in tags:
            store.add_tag(issue, tag)
        issue.modification_date = modified or created
        return issue

    return _make
