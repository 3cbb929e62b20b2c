"""Tests for the Issuebook coordinator."""

import time

import pytest

from issuebook.filters import Filter
from issuebook.models import Issue, IssueUpdate, Priority
from issuebook.query import Status
from issuebook.store import EntityStore


def test_new_issue_inherits_selected_tag(book):
    bug = book.new_tag("bug")
    book.select_filter(Filter.for_tag(bug))

    issue = book.new_issue()

    assert issue.title == "New Issue"
    assert issue.priority == Priority.MEDIUM
    assert issue.tags == [bug]
    assert book.selected_issue is issue
    assert book.store.has_changes is False
    assert book.issues_for_selected_filter() == [issue]


def test_new_issue_without_tag_scope(book):
    book.select_filter(Filter.recent(7))
    issue = book.new_issue()
    assert issue.tags == []
    assert issue in book.issues_for_selected_filter()


def test_edit_is_saved_after_quiet_period(book):
    issue = book.new_issue()
    book.update_issue(issue, IssueUpdate(title="Edited"))
    assert book.store.has_changes is True
    assert book.scheduler.pending

    deadline = time.monotonic() + 3.0
    while book.store.has_changes and time.monotonic() < deadline:
        time.sleep(0.05)

    assert book.store.has_changes is False
    assert not book.scheduler.pending


def test_toggle_completed_saves_immediately(book):
    issue = book.new_issue()
    assert book.toggle_completed(issue) is True
    assert issue.status_label == "Closed"
    assert book.store.has_changes is False
    assert book.toggle_completed(issue) is False


def test_deleting_selected_issue_clears_selection(book):
    issue = book.new_issue()
    other = book.new_issue()
    assert book.selected_issue is other

    book.delete(issue)
    assert book.selected_issue is other

    book.delete(other)
    assert book.selected_issue is None
    assert book.issues_for_selected_filter() == []


def test_delete_all_clears_selection(book):
    book.new_issue()
    book.new_tag("bug")
    book.delete_all()

    assert book.selected_issue is None
    assert book.issues_for_selected_filter() == []
    assert book.all_tags() == []


def test_state_changes_are_published(book):
    seen = []
    book.subscribe(lambda notice: seen.append(notice.action))

    book.set_filter_text("crash")
    book.set_filter_tokens([])
    book.set_advanced_filters(True, priority=Priority.HIGH, status=Status.OPEN)
    book.select_filter(None)

    assert seen == ["state", "state", "state", "state"]
    assert book.state.filter_text == "crash"
    assert book.state.filter_priority == 2


def test_store_notices_reach_listeners(book):
    seen = []
    book.subscribe(lambda notice: seen.append(notice.action))
    book.new_issue()
    assert "insert" in seen


def test_invalid_priority_is_rejected(book):
    with pytest.raises(ValueError):
        book.set_advanced_filters(True, priority=7)
    assert book.state.filter_enabled is False


def test_suggested_tokens_follow_filter_text(book):
    for name in ("bug", "build", "ui"):
        book.new_tag(name)

    book.set_filter_text("#bu")
    assert [t.name for t in book.suggested_tokens()] == ["bug", "build"]

    book.set_filter_text("bu")
    assert book.suggested_tokens() == []


def test_missing_tags_for_issue(book):
    bug = book.new_tag("bug")
    ui = book.new_tag("ui")
    issue = book.new_issue()
    book.add_tag(issue, bug)

    assert book.missing_tags(issue) == [ui]
    book.remove_tag(issue, bug)
    assert book.missing_tags(issue) == [bug, ui]


def test_filters_list_all_recent_then_tags(book):
    book.new_tag("zeta")
    book.new_tag("Alpha")

    names = [flt.name for flt in book.filters()]
    assert names == ["All Issues", "Recent Issues", "Alpha", "zeta"]


def test_close_flushes_pending_edits(book, engine):
    issue = book.new_issue()
    book.update_issue(issue, IssueUpdate(title="Unsaved"))
    assert book.scheduler.pending

    book.close()
    book.close()

    reopened = EntityStore(engine)
    try:
        assert [i.title for i in reopened.fetch(Issue)] == ["Unsaved"]
    finally:
        reopened.close()
