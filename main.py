"""Issuebook CLI entry point."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional

import typer
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from issuebook import __version__
from issuebook.config import DEFAULT_CONFIG_PATH, IssuebookConfig, load_config, write_default_config
from issuebook.controller import Issuebook
from issuebook.filters import Filter
from issuebook.logging_config import setup_logging
from issuebook.migrations import get_status, run_migrations, stamp_if_needed
from issuebook.models import Issue, IssueUpdate, Priority, Tag
from issuebook.query import ANY_PRIORITY, SortType, Status
from issuebook.store import ChangeNotice

app = typer.Typer(add_completion=False, help=f"Issuebook issue tracker CLI (v{__version__})")
logger = logging.getLogger("issuebook")

PRIORITY_NAMES = {"low": Priority.LOW, "medium": Priority.MEDIUM, "high": Priority.HIGH}


def _ensure_config() -> IssuebookConfig:
    try:
        config = load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: issuebook init")
        raise typer.Exit(code=1)
    setup_logging(config.logging)
    return config


def _prepare_database(config: IssuebookConfig) -> None:
    """Stamp legacy databases, then upgrade to head."""
    db_path = config.database_path
    if db_path is None:
        return
    stamp_if_needed(db_path)
    current, head = get_status(db_path)
    if current != head:
        logger.info(f"Migrating database {current} -> {head} ...")
        run_migrations(db_path, backup=True)
        logger.info("Migration complete.")


def _open(config: IssuebookConfig, monitor: bool = False) -> Issuebook:
    try:
        book = Issuebook.open(config, monitor=monitor)
    except SQLAlchemyError as exc:
        typer.echo(f"[ERROR] Cannot open database {config.database_path}: {exc}")
        raise typer.Exit(code=1)
    _prepare_database(config)
    return book


def _parse_priority(name: str) -> Priority:
    try:
        return PRIORITY_NAMES[name.strip().lower()]
    except KeyError:
        typer.echo(f"[ERROR] Unknown priority '{name}' (use low, medium or high)")
        raise typer.Exit(code=1)


def _find_issue(book: Issuebook, ref: str) -> Issue:
    matches = book.store.fetch(Issue, col(Issue.id).startswith(ref))
    if len(matches) != 1:
        typer.echo(f"[ERROR] {len(matches)} issues match id '{ref}'")
        raise typer.Exit(code=1)
    return matches[0]


def _find_tag(book: Issuebook, name: str) -> Tag:
    wanted = name.lstrip("#").strip().casefold()
    matches = sorted(t for t in book.all_tags() if t.name.casefold() == wanted)
    if not matches:
        typer.echo(f"[ERROR] No tag named '{name}'")
        raise typer.Exit(code=1)
    return matches[0]


def _format_issue(issue: Issue) -> str:
    marker = "!" if issue.priority == Priority.HIGH else " "
    closed = "  CLOSED" if issue.completed else ""
    return (
        f"{marker} {issue.id[:8]}  {issue.title}  [{issue.tags_list}]  "
        f"{issue.creation_date:%Y-%m-%d}{closed}"
    )


@app.command()
def init(
    db: Optional[Path] = typer.Option(None, "--db", help="Database file path"),
) -> None:
    """Create config.ini with default settings."""
    path = write_default_config(DEFAULT_CONFIG_PATH, db)
    typer.echo(f"[OK] Config created at {path}")


@app.command("list")
def list_issues(
    filter_name: str = typer.Option("all", "--filter", help="all, recent, or a tag name"),
    search: str = typer.Option("", "--search", help="Text to find in title or content"),
    tags: List[str] = typer.Option([], "--tag", help="Require this tag (repeatable)"),
    priority: Optional[str] = typer.Option(None, "--priority", help="low, medium or high"),
    status: Status = typer.Option(Status.ALL, "--status", help="all, open or closed"),
    sort: str = typer.Option("created", "--sort", help="created or modified"),
    oldest_first: bool = typer.Option(False, "--oldest-first", help="Oldest issues first"),
) -> None:
    """List issues for a filter."""
    config = _ensure_config()
    with _open(config) as book:
        if filter_name == "all":
            book.select_filter(Filter.ALL)
        elif filter_name == "recent":
            book.select_filter(Filter.recent(config.filters.recent_days))
        else:
            book.select_filter(Filter.for_tag(_find_tag(book, filter_name)))

        book.set_filter_text(search)
        book.set_filter_tokens(_find_tag(book, name) for name in tags)

        wanted = _parse_priority(priority) if priority is not None else ANY_PRIORITY
        book.set_advanced_filters(
            enabled=priority is not None or status is not Status.ALL,
            priority=wanted,
            status=status,
        )
        sort_type = SortType.DATE_MODIFIED if sort == "modified" else SortType.DATE_CREATED
        book.set_sort(sort_type, newest_first=not oldest_first)

        issues = book.issues_for_selected_filter()
        for issue in issues:
            typer.echo(_format_issue(issue))
        typer.echo(f"{len(issues)} issue(s)")


@app.command()
def add(
    title: str = typer.Argument(..., help="Issue title"),
    content: str = typer.Option("", "--content", help="Issue description"),
    priority: str = typer.Option("medium", "--priority", help="low, medium or high"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Create in this tag's scope"),
) -> None:
    """Create a new issue."""
    wanted = _parse_priority(priority)
    config = _ensure_config()
    with _open(config) as book:
        if tag:
            book.select_filter(Filter.for_tag(_find_tag(book, tag)))
        issue = book.new_issue()
        book.update_issue(
            issue,
            IssueUpdate(
                title=title,
                content=content,
                priority=wanted,
            ),
        )
        book.save()
        typer.echo(f"[OK] Created {issue.id[:8]} {issue.title}")


@app.command("new-tag")
def new_tag(name: str = typer.Argument(..., help="Tag name")) -> None:
    """Create a new tag."""
    config = _ensure_config()
    with _open(config) as book:
        tag = book.new_tag(name)
        typer.echo(f"[OK] Created tag {tag.name}")


@app.command()
def tag(
    issue_ref: str = typer.Argument(..., help="Issue id (or unique prefix)"),
    name: str = typer.Argument(..., help="Tag name"),
    remove: bool = typer.Option(False, "--remove", help="Detach instead of attach"),
) -> None:
    """Attach a tag to an issue (or detach it with --remove)."""
    config = _ensure_config()
    with _open(config) as book:
        issue = _find_issue(book, issue_ref)
        target = _find_tag(book, name)
        if remove:
            changed = book.remove_tag(issue, target)
        else:
            changed = book.add_tag(issue, target)
        book.save()
        typer.echo(f"[OK] {issue.title}: {issue.tags_list}" if changed else "[INFO] Nothing to do")


@app.command("close-issue")
def close_issue(issue_ref: str = typer.Argument(..., help="Issue id (or unique prefix)")) -> None:
    """Close an open issue, or re-open a closed one."""
    config = _ensure_config()
    with _open(config) as book:
        issue = _find_issue(book, issue_ref)
        book.toggle_completed(issue)
        typer.echo(f"[OK] {issue.title} is now {issue.status_label}")


@app.command()
def suggest(text: str = typer.Argument(..., help="Search text, e.g. '#bu'")) -> None:
    """Show tag suggestions for search text."""
    config = _ensure_config()
    with _open(config) as book:
        book.set_filter_text(text)
        for suggestion in book.suggested_tokens():
            typer.echo(f"#{suggestion.name}")


@app.command()
def delete(issue_ref: str = typer.Argument(..., help="Issue id (or unique prefix)")) -> None:
    """Delete a single issue."""
    config = _ensure_config()
    with _open(config) as book:
        issue = _find_issue(book, issue_ref)
        book.delete(issue)
        typer.echo(f"[OK] Deleted {issue_ref}")


@app.command("delete-all")
def delete_all(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive delete"),
) -> None:
    """Delete every issue and tag."""
    if not confirm:
        typer.echo("[ERROR] This will delete all issues and tags. Use --confirm.")
        raise typer.Exit(code=1)
    config = _ensure_config()
    with _open(config) as book:
        book.delete_all()
    typer.echo("[OK] All issues and tags deleted")


@app.command()
def stats() -> None:
    """Show tracker statistics."""
    config = _ensure_config()
    with _open(config) as book:
        issues = book.store.fetch(Issue)
        tags = book.all_tags()
        open_count = len([i for i in issues if not i.completed])
        high = len([i for i in issues if i.priority == Priority.HIGH and not i.completed])

        typer.echo("Tracker Statistics:")
        typer.echo(f"  Total issues: {len(issues)}")
        typer.echo(f"  Open issues: {open_count}")
        typer.echo(f"  High priority open: {high}")
        typer.echo(f"  Tags: {len(tags)}")
        for flt in book.filters()[2:]:
            typer.echo(f"    #{flt.name}: {flt.active_issues_count} active")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    config = _ensure_config()
    db_path = config.database_path
    if db_path is None:
        typer.echo("[INFO] In-memory database: nothing to migrate.")
        raise typer.Exit(code=0)

    current, head = get_status(db_path)
    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind, current: {current}, head: {head}")
        raise typer.Exit(code=1)

    if current == head:
        typer.echo(f"[OK] Database already at {head} (head). Nothing to do.")
        raise typer.Exit(code=0)

    logger.info(f"Migrating database {current} -> {head} ...")
    run_migrations(db_path, backup=True)
    logger.info("Migration complete.")


@app.command()
def watch() -> None:
    """Print the open issue count whenever another process changes the database."""
    config = _ensure_config()
    book = _open(config, monitor=True)

    def _on_change(notice: ChangeNotice) -> None:
        if notice.action == "remote":
            count = len([i for i in book.issues_for_selected_filter() if not i.completed])
            typer.echo(f"[INFO] Remote change: {count} open issue(s)")

    book.subscribe(_on_change)
    typer.echo(f"[OK] Watching {config.database_path} (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        book.close()


if __name__ == "__main__":
    app()
