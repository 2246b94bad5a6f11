"""CLI for idea manager."""

import asyncio
import getpass
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Literal, TypeVar

import structlog
from cyclopts import App, Parameter

from idea_manager.admin_commands import admin_app
from idea_manager.backends import HttpBackend
from idea_manager.comment_commands import comment_app
from idea_manager.config import Config, get_config
from idea_manager.config_commands import config_app
from idea_manager.errors import IdeaManagerError
from idea_manager.filters import Page
from idea_manager.models import Idea
from idea_manager.service import IdeaService
from idea_manager.sla import sla_label

logger = structlog.get_logger()

T = TypeVar("T")

app = App(
    help="Idea Manager - submit, review and track ideas",
)

app.command(admin_app)
app.command(comment_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_backend(config: Config) -> HttpBackend:
    """Get the configured backend, carrying over any saved session."""
    base_url = config.get("api.base_url")
    if not base_url:
        raise ValueError(
            "API base URL not configured. Set it using:\n"
            "  idea-manager config set api.base_url <url>"
        )
    return HttpBackend(
        base_url=base_url,
        timeout=config.get_float("api.timeout"),
        cookies=config.get("session.cookies"),
    )


def _save_session(config: Config, backend: HttpBackend, service: IdeaService) -> None:
    cookies = backend.cookies
    if service.user is not None and cookies:
        if cookies != config.get("session.cookies"):
            config.set("session.cookies", cookies)
    elif config.get("session.cookies") is not None:
        config.unset("session.cookies")


def run(operation: Callable[[IdeaService], Awaitable[T]], restore: bool = True) -> T:
    """Run ``operation`` against a fresh service and report errors readably.

    Args:
        operation: Coroutine function receiving the service
        restore: Load the saved session's user before running
    """
    config = get_config()

    async def _main() -> T:
        backend = get_backend(config)
        service = IdeaService(backend, page_size=config.get_int("page_size"))
        try:
            if restore and config.get("session.cookies"):
                await service.restore_session()
            return await operation(service)
        finally:
            _save_session(config, backend, service)
            await backend.close()

    try:
        return asyncio.run(_main())
    except IdeaManagerError as e:
        logger.error("Command failed", error_type=type(e).__name__, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def format_idea(idea: Idea, show_sla: bool = False) -> str:
    line = f"#{idea.id} [{idea.status.label}] {idea.title} ({idea.category.label}, {idea.votes} votes)"
    if show_sla:
        line += f" - {sla_label(idea.created_at)}"
    return line


def print_page(page: Page, render: Callable) -> None:
    if not page.items:
        print("Nothing found")
        return
    for item in page.items:
        print(render(item))
    if page.total_pages > 1:
        print(
            f"\nShowing {page.first_index} to {page.last_index} of {page.total_items} "
            f"(page {page.page}/{page.total_pages})"
        )


def _password(password: str | None) -> str:
    return password if password is not None else getpass.getpass("Password: ")


@app.command
def register(
    username: str,
    display_name: str,
    password: str | None = None,
    department: str | None = None,
    email: str | None = None,
) -> None:
    """Create an account and log in."""
    secret = _password(password)
    user = run(
        lambda s: s.register(username, secret, display_name, department=department, email=email),
        restore=False,
    )
    print(f"Registered and logged in as {user.name}")


@app.command
def login(username: str, password: str | None = None) -> None:
    """Log in."""
    secret = _password(password)
    user = run(lambda s: s.login(username, secret), restore=False)
    print(f"Logged in as {user.name} ({user.role})")


@app.command
def admin_login(username: str, password: str | None = None) -> None:
    """Log in through the admin entry point; refused for non-admin roles."""
    secret = _password(password)
    user = run(lambda s: s.admin_login(username, secret), restore=False)
    print(f"Admin login successful: {user.name} ({user.role})")


@app.command
def logout() -> None:
    """Log out."""
    run(lambda s: s.logout())
    print("Logged out")


@app.command
def whoami() -> None:
    """Show the logged in user."""
    user = run(lambda s: s.restore_session(), restore=False)
    if user is None:
        print("Not logged in")
        return
    print(f"{user.name} (@{user.username}), role: {user.role}")
    if user.department:
        print(f"Department: {user.department}")


@app.command(name="list")
def list_ideas(
    query: str | None = None,
    status: str | None = None,
    category: str | None = None,
    user: int | None = None,
    department: str | None = None,
    page: int = 1,
) -> None:
    """List ideas with optional search, filters and paging."""
    result = run(
        lambda s: s.find_ideas(
            query=query, status=status, category=category, user_id=user, department=department, page=page
        )
    )
    print_page(result, format_idea)


@app.command
def show(idea_id: int) -> None:
    """Show an idea with its comments."""
    idea = run(lambda s: s.idea(idea_id))

    print(f"Idea: {idea.id}")
    print(f"Title: {idea.title}")
    print(f"Category: {idea.category.label}")
    print(f"Status: {idea.status.label}")
    print(f"Votes: {idea.votes}")
    if idea.submitter:
        print(f"Submitted by: {idea.submitter.display_name}")
    if idea.assigned_to:
        print(f"Assigned to: {idea.assigned_to.display_name}")
    if idea.department:
        print(f"Department: {idea.department}")
    if idea.tags:
        print(f"Tags: {', '.join(idea.tags)}")
    print(f"Submitted: {idea.created_at:%b %d, %Y} ({sla_label(idea.created_at)})")
    print(f"\n{idea.description}")
    if idea.admin_notes:
        print(f"\nAdmin notes: {idea.admin_notes}")
    if idea.comments:
        print(f"\n{len(idea.comments)} comment(s), see: idea-manager comment tree {idea.id}")


@app.command
def submit(
    title: str,
    description: str,
    category: Literal["pain-point", "opportunity", "challenge"] = "opportunity",
    tags: str = "",
    department: str | None = None,
    priority: str | None = None,
    impact: str | None = None,
    inspiration: str | None = None,
    similar_solutions: str | None = None,
    attachment: Path | None = None,
    files: list[Path] | None = None,
) -> None:
    """Submit a new idea, pain point or challenge."""
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()]
    idea = run(
        lambda s: s.submit_idea(
            attachment=attachment,
            files=files,
            title=title,
            description=description,
            category=category,
            tags=tag_list,
            department=department,
            priority=priority,
            impact=impact,
            inspiration=inspiration,
            similar_solutions=similar_solutions,
        )
    )
    print(f"Submitted idea {idea.id}: {idea.title}")


@app.command
def vote(idea_id: int) -> None:
    """Vote for an idea."""
    result = run(lambda s: s.vote(idea_id))
    if result.already_voted:
        print(f"You have already voted for idea {idea_id} ({result.idea.votes} votes)")
    else:
        print(f"Voted for idea {idea_id} ({result.idea.votes} votes)")


@app.command
def follow(idea_id: int) -> None:
    """Follow an idea."""
    run(lambda s: s.follow(idea_id))
    print(f"Following idea {idea_id}")


@app.command
def unfollow(idea_id: int) -> None:
    """Stop following an idea."""
    run(lambda s: s.unfollow(idea_id))
    print(f"No longer following idea {idea_id}")


@app.command
def following() -> None:
    """List followed ideas."""
    ideas = run(lambda s: s.followed_ideas())
    print(f"Following {len(ideas)} idea(s):\n")
    for idea in ideas:
        print(format_idea(idea))


@app.command
def my_votes() -> None:
    """List ideas you voted for."""
    ideas = run(lambda s: s.my_votes())
    print(f"Voted for {len(ideas)} idea(s):\n")
    for idea in ideas:
        print(format_idea(idea))


@app.command
def search(query: str) -> None:
    """Search ideas on the server."""
    ideas = run(lambda s: s.search(query))
    print(f"Found {len(ideas)} idea(s):\n")
    for idea in ideas:
        print(format_idea(idea))


@app.command
def metrics() -> None:
    """Show dashboard counters."""
    m = run(lambda s: s.metrics())
    print(f"Ideas submitted: {m.ideas_submitted}")
    print(f"In review: {m.in_review}")
    print(f"Implemented: {m.implemented}")
    print(f"Cost saved: {m.cost_saved}")
    print(f"Revenue generated: {m.revenue_generated}")


@app.command
def leaderboard(
    category: str | None = None,
    department: str | None = None,
    time_range: str | None = None,
) -> None:
    """Show top contributors."""
    entries = run(lambda s: s.leaderboard(category=category, department=department, time_range=time_range))
    if not entries:
        print("No contributors yet")
        return
    for rank, entry in enumerate(entries, 1):
        print(
            f"{rank}. {entry.user.display_name}: {entry.ideas_submitted} submitted, "
            f"{entry.ideas_implemented} implemented, impact {entry.impact_score}"
        )


@app.command
def notifications(
    limit: int = 10,
    only_unread: bool = False,
    mark_read: int | None = None,
    mark_all_read: bool = False,
) -> None:
    """List notifications, or mark them as read."""
    if mark_all_read:
        run(lambda s: s.mark_all_notifications_read())
        print("All notifications marked as read")
        return
    if mark_read is not None:
        run(lambda s: s.mark_notification_read(mark_read))
        print(f"Notification {mark_read} marked as read")
        return

    items = run(lambda s: s.notifications(limit=limit, only_unread=only_unread))
    if not items:
        print("No notifications")
        return
    for n in items:
        marker = "●" if not n.is_read else "○"
        print(f"{marker} {n.id}: {n.title} - {n.message}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


def entrypoint() -> None:
    app.meta()


if __name__ == "__main__":
    entrypoint()
