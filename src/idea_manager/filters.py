"""Search, filtering and pagination over fetched collections.

Every filter takes optional constraints; ``None`` or an empty string means
"no constraint" and the remaining constraints are ANDed. Output keeps the
input order.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from idea_manager.models import Category, Comment, Idea, Role, Status, User

T = TypeVar("T")


def _matches_text(query: str, *fields: str | None) -> bool:
    needle = query.lower()
    return any(needle in value.lower() for value in fields if value)


def _is_set(value: object) -> bool:
    return value is not None and value != ""


def filter_ideas(
    ideas: Iterable[Idea],
    query: str | None = None,
    status: Status | str | None = None,
    category: Category | str | None = None,
    user_id: int | None = None,
    department: str | None = None,
) -> list[Idea]:
    """Filter ideas by free text (title, description) and field constraints.

    ``user_id`` matches the submitter. ``department`` matches the idea's own
    department, or the submitter's when the idea has none.
    """
    result = []
    for idea in ideas:
        if query and not _matches_text(query, idea.title, idea.description):
            continue
        if _is_set(status) and idea.status != status:
            continue
        if _is_set(category) and idea.category != category:
            continue
        if _is_set(user_id) and idea.submitted_by_id != user_id:
            continue
        if department:
            idea_department = idea.department or (idea.submitter.department if idea.submitter else None)
            if idea_department != department:
                continue
        result.append(idea)
    return result


def filter_comments(
    comments: Iterable[Comment],
    query: str | None = None,
    user_id: int | None = None,
    idea_id: int | None = None,
) -> list[Comment]:
    """Filter comments by free text (content, author name) and author/idea."""
    result = []
    for comment in comments:
        if query:
            author = comment.user
            if not _matches_text(
                query,
                comment.content,
                author.display_name if author else None,
                author.username if author else None,
            ):
                continue
        if _is_set(user_id) and comment.user_id != user_id:
            continue
        if _is_set(idea_id) and comment.idea_id != idea_id:
            continue
        result.append(comment)
    return result


def filter_users(
    users: Iterable[User],
    query: str | None = None,
    role: Role | str | None = None,
    department: str | None = None,
) -> list[User]:
    """Filter users by free text (display name, username, email), role and department."""
    result = []
    for user in users:
        if query and not _matches_text(query, user.display_name, user.username, user.email):
            continue
        if _is_set(role) and user.role != role:
            continue
        if department and user.department != department:
            continue
        result.append(user)
    return result


@dataclass
class Page(Generic[T]):
    """One page of a filtered collection."""

    items: list[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def first_index(self) -> int:
        """1-based index of the first item on this page, 0 when empty."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        if not self.items:
            return 0
        return self.first_index + len(self.items) - 1


def paginate(items: Sequence[T], page: int = 1, page_size: int = 10) -> Page[T]:
    """Slice ``items`` into a 1-indexed page.

    Pages outside ``[1, total_pages]`` are clamped rather than rejected.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    page = max(1, min(page, max(1, total_pages)))
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )
