"""Comment commands for idea manager CLI."""

from cyclopts import App

comment_app = App(name="comment", help="Read and write comments on ideas")


def _author(comment) -> str:
    if comment.user is None:
        return f"user {comment.user_id}"
    return comment.user.display_name or comment.user.username or f"user {comment.user_id}"


@comment_app.command(name="list")
def list_comments(
    idea_id: int | None = None,
    query: str | None = None,
    user: int | None = None,
    page: int = 1,
) -> None:
    """List comments for an idea, or all comments (admin) when no idea is given."""
    from idea_manager.cli import print_page, run

    result = run(lambda s: s.find_comments(query=query, user_id=user, idea_id=idea_id, page=page))
    print_page(result, lambda c: f"{c.id} on #{c.idea_id} by {_author(c)}: {c.content}")


@comment_app.command
def tree(idea_id: int) -> None:
    """Display an idea's comments as a reply tree."""
    from idea_manager.cli import run

    roots = run(lambda s: s.comment_tree(idea_id))
    if not roots:
        print(f"No comments on idea {idea_id}")
        return

    for root in roots:
        for depth, comment in root.walk():
            print(f"{'  ' * depth}- [{comment.id}] {_author(comment)}: {comment.content}")


@comment_app.command
def add(idea_id: int, content: str) -> None:
    """Comment on an idea."""
    from idea_manager.cli import run

    comment = run(lambda s: s.add_comment(idea_id, content))
    print(f"Added comment {comment.id} on idea {idea_id}")


@comment_app.command
def reply(idea_id: int, parent_id: int, content: str) -> None:
    """Reply to a comment."""
    from idea_manager.cli import run

    comment = run(lambda s: s.add_comment(idea_id, content, parent_id=parent_id))
    print(f"Added reply {comment.id} to comment {parent_id}")


@comment_app.command
def edit(comment_id: int, content: str) -> None:
    """Edit a comment."""
    from idea_manager.cli import run

    run(lambda s: s.edit_comment(comment_id, content))
    print(f"Updated comment {comment_id}")


@comment_app.command
def delete(*comment_ids: int) -> None:
    """Delete one or more comments (admin)."""
    from idea_manager.cli import run

    async def _delete(service) -> None:
        for comment_id in comment_ids:
            await service.delete_comment(comment_id)

    run(_delete)
    print(f"Deleted {len(comment_ids)} comment(s)")
