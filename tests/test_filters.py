"""Tests for filter descriptors."""

from datetime import datetime, timezone

from issuebook.filters import Filter, tag_filters
from issuebook.models import FAR_PAST, Issue, Tag


def test_filters_compare_by_id_only():
    first = Filter(id="x", name="One", icon="tray")
    second = Filter(id="x", name="Two", icon="clock")

    assert first == second
    assert hash(first) == hash(second)
    assert {first: 1}[second] == 1
    assert Filter.ALL != Filter.recent(7)


def test_tag_filter_identity_follows_the_tag():
    tag = Tag(name="bug")
    assert Filter.for_tag(tag) == Filter.for_tag(tag)
    assert Filter.for_tag(tag) != Filter.for_tag(Tag(name="bug"))


def test_recent_threshold():
    flt = Filter.recent(7, now=datetime(2026, 1, 8, 9, 30, tzinfo=timezone.utc))
    assert flt.min_modification_date == datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)
    assert flt.tag is None


def test_all_filter_has_no_threshold():
    assert Filter.ALL.min_modification_date == FAR_PAST
    assert FAR_PAST.tzinfo is timezone.utc
    assert Filter.ALL.tag is None
    assert Filter.ALL.active_issues_count == 0


def test_active_issues_count_skips_closed_issues():
    tag = Tag(name="bug")
    Issue(title="Open", tags=[tag])
    Issue(title="Closed", completed=True, tags=[tag])

    assert Filter.for_tag(tag).active_issues_count == 1


def test_tag_filters_follow_natural_tag_order():
    tags = [Tag(name="work"), Tag(name="Bug"), Tag(name="home")]
    assert [flt.name for flt in tag_filters(tags)] == ["Bug", "home", "work"]
    assert all(flt.icon == "tag" for flt in tag_filters(tags))
