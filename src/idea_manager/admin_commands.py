"""Administrative commands for idea manager CLI."""

from typing import Literal

from cyclopts import App

admin_app = App(name="admin", help="Review, transition and assign ideas; manage users")


@admin_app.command
def review() -> None:
    """List ideas awaiting review with their SLA status."""
    from idea_manager.cli import run

    queue = run(lambda s: s.review_queue())
    if not queue:
        print("No ideas awaiting review")
        return

    print(f"{len(queue)} idea(s) awaiting review:\n")
    for idea, sla in queue:
        submitter = idea.submitter.display_name if idea.submitter else "unknown"
        print(f"#{idea.id} {idea.title} [{idea.category.label}] by {submitter} - {sla.label}")


@admin_app.command
def ideas(
    query: str | None = None,
    status: str | None = None,
    category: str | None = None,
    department: str | None = None,
    page: int = 1,
) -> None:
    """List all ideas with admin filters."""
    from idea_manager.cli import format_idea, print_page, run

    result = run(
        lambda s: s.find_ideas(
            query=query, status=status, category=category, department=department, page=page, source="admin"
        )
    )
    print_page(result, lambda idea: format_idea(idea, show_sla=True))


@admin_app.command
def advance(idea_id: int) -> None:
    """Advance an idea to the next status in the workflow."""
    from idea_manager.cli import run

    idea = run(lambda s: s.advance_linear(idea_id))
    print(f"Idea {idea.id} is now {idea.status.label}")


@admin_app.command
def set_status(
    idea_id: int,
    status: Literal["submitted", "in-review", "merged", "parked", "implemented"],
    notes: str | None = None,
) -> None:
    """Set an idea's status directly, outside the linear workflow."""
    from idea_manager.cli import run

    idea = run(lambda s: s.set_status_direct(idea_id, status, admin_notes=notes))
    print(f"Idea {idea.id} is now {idea.status.label}")


@admin_app.command
def assign(
    idea_id: int,
    role: Literal["reviewer", "transformer", "implementer"],
    user_id: int | None = None,
    email: str | None = None,
) -> None:
    """Assign an idea to a user, by id or by email address."""
    from idea_manager.cli import run

    run(lambda s: s.assign(idea_id, role, user_id=user_id, email=email))
    target = email if email else f"user {user_id}"
    print(f"Assigned {role} role on idea {idea_id} to {target}")


@admin_app.command
def users(
    query: str | None = None,
    role: str | None = None,
    department: str | None = None,
    page: int = 1,
) -> None:
    """List users."""
    from idea_manager.cli import print_page, run

    result = run(lambda s: s.find_users(query=query, role=role, department=department, page=page))

    def render(user) -> str:
        email = f" <{user.email}>" if user.email else ""
        return f"{user.id}: {user.name} (@{user.username}){email} - {user.role}"

    print_page(result, render)


@admin_app.command
def delete_user(*user_ids: int) -> None:
    """Delete one or more users."""
    from idea_manager.cli import run

    async def _delete(service) -> None:
        for user_id in user_ids:
            await service.delete_user(user_id)

    run(_delete)
    print(f"Deleted {len(user_ids)} user(s)")


@admin_app.command
def submissions(user_id: int) -> None:
    """List a user's submissions."""
    from idea_manager.cli import format_idea, run

    ideas = run(lambda s: s.user_submissions(user_id))
    print(f"User {user_id} submitted {len(ideas)} idea(s):\n")
    for idea in ideas:
        print(format_idea(idea))


@admin_app.command
def auth_check() -> None:
    """Check whether the saved session may use admin pages."""
    from idea_manager.cli import run

    ok = run(lambda s: s.auth_check())
    print("Admin session valid" if ok else "No admin session")
