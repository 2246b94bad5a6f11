"""Idea service: the operations the CLI and other front ends call.

The service ties a backend to a query cache and the current session. Reads
go through the cache; every mutation awaits the backend's response first
and only then invalidates the affected cache prefixes, so a failed
mutation leaves the cache untouched.
"""

from collections.abc import Hashable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from idea_manager.access import check_admin_login, require_admin_capable, require_user
from idea_manager.backend import Backend
from idea_manager.cache import QueryCache, make_key
from idea_manager.errors import ActionInFlight, AdminAccessDenied, IdeaManagerError
from idea_manager.filters import Page, filter_comments, filter_ideas, filter_users, paginate
from idea_manager.forms import AssignmentForm, CommentForm, IdeaForm, LoginForm, RegisterForm, validate_form
from idea_manager.lifecycle import next_status, validate_direct_status
from idea_manager.models import (
    Assignment,
    Comment,
    Idea,
    LeaderboardEntry,
    Metrics,
    Notification,
    Status,
    User,
    VoteResult,
)
from idea_manager.sla import SlaStatus, sla_status
from idea_manager.threads import CommentNode, build_comment_tree

logger = structlog.get_logger()

IDEAS = make_key("/api/ideas")
COMMENTS = make_key("/api/comments")
METRICS = make_key("/api/metrics")
ADMIN_IDEAS = make_key("/api/admin/ideas")
ADMIN_USERS = make_key("/api/admin/users")
NOTIFICATIONS = make_key("/api/notifications")
LEADERBOARD = make_key("/api/leaderboard")


class InFlightGuard:
    """Tracks which (action, resource) pairs are awaiting a response.

    Not a lock: a second attempt while the first is pending is rejected
    with ActionInFlight instead of waiting.
    """

    def __init__(self) -> None:
        self._active: set[tuple[str, Hashable]] = set()

    def is_active(self, action: str, resource: Hashable) -> bool:
        return (action, resource) in self._active

    @asynccontextmanager
    async def hold(self, action: str, resource: Hashable):
        token = (action, resource)
        if token in self._active:
            logger.info("Action already in flight", action=action, resource=resource)
            raise ActionInFlight(f"{action} on {resource} is already in progress")
        self._active.add(token)
        try:
            yield
        finally:
            self._active.discard(token)


class IdeaService:
    """Session-aware operations over a backend and a query cache."""

    def __init__(
        self,
        backend: Backend,
        cache: QueryCache | None = None,
        user: User | None = None,
        page_size: int = 10,
    ) -> None:
        self.backend = backend
        self.cache = cache if cache is not None else QueryCache()
        self.user = user
        self.page_size = page_size
        self.guard = InFlightGuard()

    def _invalidate(self, *prefixes: tuple[str, ...]) -> None:
        for prefix in prefixes:
            self.cache.invalidate(prefix)

    # Session

    async def login(self, username: str, password: str) -> User:
        form = validate_form(LoginForm, username=username, password=password)
        self.user = await self.backend.login(form.username, form.password)
        self.cache.clear()
        logger.info("Logged in", user_id=self.user.id, role=str(self.user.role))
        return self.user

    async def admin_login(self, username: str, password: str) -> User:
        """Log in through the admin entry point.

        A user whose role is not admin-capable is logged out again at once
        and AdminAccessDenied is raised; no session is kept.
        """
        form = validate_form(LoginForm, username=username, password=password)
        user = await self.backend.login(form.username, form.password)
        if not check_admin_login(user):
            logger.warning("Admin login refused", user_id=user.id, role=str(user.role))
            self.user = None
            try:
                await self.backend.logout()
            except IdeaManagerError as e:
                logger.error("Forced logout failed", user_id=user.id, error=str(e))
                raise AdminAccessDenied("You do not have admin privileges") from e
            finally:
                self.cache.clear()
            raise AdminAccessDenied("You do not have admin privileges")
        self.user = user
        self.cache.clear()
        logger.info("Admin logged in", user_id=user.id, role=str(user.role))
        return user

    async def logout(self) -> None:
        try:
            await self.backend.logout()
        finally:
            self.user = None
            self.cache.clear()

    async def register(self, username: str, password: str, display_name: str, **extra: Any) -> User:
        form = validate_form(RegisterForm, username=username, password=password, display_name=display_name, **extra)
        self.user = await self.backend.register(form)
        self.cache.clear()
        return self.user

    async def restore_session(self) -> User | None:
        """Load the session user from the backend."""
        self.user = await self.backend.current_user()
        return self.user

    async def auth_check(self) -> bool:
        ok = await self.backend.auth_check()
        if not ok:
            self.user = None
        return ok

    # Reads

    async def ideas(self) -> list[Idea]:
        return await self.cache.fetch(IDEAS, self.backend.list_ideas)

    async def review_ideas(self) -> list[Idea]:
        require_admin_capable(self.user, "review ideas")
        return await self.cache.fetch(make_key("/api/ideas/review"), self.backend.list_review_ideas)

    async def admin_ideas(self) -> list[Idea]:
        require_admin_capable(self.user, "manage ideas")
        return await self.cache.fetch(ADMIN_IDEAS, self.backend.list_admin_ideas)

    async def idea(self, idea_id: int) -> Idea:
        return await self.cache.fetch(make_key(f"/api/ideas/{idea_id}"), lambda: self.backend.get_idea(idea_id))

    async def comments(self, idea_id: int | None = None) -> list[Comment]:
        if idea_id is None:
            require_admin_capable(self.user, "list all comments")
            return await self.cache.fetch(COMMENTS, lambda: self.backend.list_comments())
        key = make_key(f"/api/ideas/{idea_id}/comments")
        return await self.cache.fetch(key, lambda: self.backend.list_comments(idea_id))

    async def comment_tree(self, idea_id: int) -> list[CommentNode]:
        return build_comment_tree(await self.comments(idea_id))

    async def users(self) -> list[User]:
        require_admin_capable(self.user, "list users")
        return await self.cache.fetch(ADMIN_USERS, self.backend.list_users)

    async def user_submissions(self, user_id: int) -> list[Idea]:
        require_admin_capable(self.user, "view user submissions")
        key = make_key(f"/api/admin/users/{user_id}/submissions")
        return await self.cache.fetch(key, lambda: self.backend.user_submissions(user_id))

    async def metrics(self) -> Metrics:
        return await self.cache.fetch(METRICS, self.backend.metrics)

    async def leaderboard(self, **params: str | None) -> list[LeaderboardEntry]:
        key = make_key("/api/leaderboard", *(f"{k}={v}" for k, v in sorted(params.items()) if v))
        return await self.cache.fetch(key, lambda: self.backend.leaderboard(**params))

    async def followed_ideas(self) -> list[Idea]:
        require_user(self.user)
        return await self.cache.fetch(make_key("/api/ideas/my-follows"), self.backend.followed_ideas)

    async def my_votes(self) -> list[Idea]:
        require_user(self.user)
        return await self.cache.fetch(make_key("/api/ideas/my-votes"), self.backend.my_votes)

    async def is_following(self, idea_id: int) -> bool:
        require_user(self.user)
        return await self.backend.is_following(idea_id)

    async def notifications(self, limit: int = 10, only_unread: bool = False) -> list[Notification]:
        require_user(self.user)
        key = make_key("/api/notifications", f"limit={limit}", f"unread={only_unread}")
        return await self.cache.fetch(key, lambda: self.backend.notifications(limit, only_unread))

    async def unread_notification_count(self) -> int:
        require_user(self.user)
        key = make_key("/api/notifications/unread-count")
        return await self.cache.fetch(key, self.backend.unread_notification_count)

    async def search(self, query: str) -> list[Idea]:
        return await self.backend.search(query)

    # Filtered, paginated views

    async def find_ideas(
        self,
        query: str | None = None,
        status: Status | str | None = None,
        category: str | None = None,
        user_id: int | None = None,
        department: str | None = None,
        page: int = 1,
        source: str = "all",
    ) -> Page[Idea]:
        """Filter and paginate ideas from ``source`` (all, review or admin)."""
        loaders = {"all": self.ideas, "review": self.review_ideas, "admin": self.admin_ideas}
        if source not in loaders:
            raise ValueError(f"Unknown idea source: {source}")
        ideas = await loaders[source]()
        matched = filter_ideas(
            ideas, query=query, status=status, category=category, user_id=user_id, department=department
        )
        return paginate(matched, page, self.page_size)

    async def find_comments(
        self,
        query: str | None = None,
        user_id: int | None = None,
        idea_id: int | None = None,
        page: int = 1,
    ) -> Page[Comment]:
        comments = await self.comments(idea_id)
        return paginate(filter_comments(comments, query=query, user_id=user_id), page, self.page_size)

    async def find_users(
        self,
        query: str | None = None,
        role: str | None = None,
        department: str | None = None,
        page: int = 1,
    ) -> Page[User]:
        users = await self.users()
        return paginate(filter_users(users, query=query, role=role, department=department), page, self.page_size)

    async def review_queue(self, now: datetime | None = None) -> list[tuple[Idea, SlaStatus]]:
        """Ideas awaiting review with their SLA status, computed on every call."""
        return [(idea, sla_status(idea.created_at, now)) for idea in await self.review_ideas()]

    # Ideas

    async def submit_idea(
        self,
        attachment: Path | None = None,
        files: list[Path] | None = None,
        **fields: Any,
    ) -> Idea:
        require_user(self.user)
        form = validate_form(IdeaForm, **fields)
        idea = await self.backend.create_idea(form, attachment=attachment, files=files)
        self._invalidate(IDEAS, ADMIN_IDEAS, ADMIN_USERS, METRICS, LEADERBOARD)
        logger.info("Idea submitted", idea_id=idea.id)
        return idea

    async def vote(self, idea_id: int) -> VoteResult:
        require_user(self.user)
        async with self.guard.hold("vote", idea_id):
            result = await self.backend.vote(idea_id)
        self._invalidate(IDEAS, ADMIN_IDEAS, ADMIN_USERS)
        return result

    async def advance_linear(self, idea_id: int) -> Idea:
        """Move an idea one step along the linear workflow."""
        require_admin_capable(self.user, "change idea status")
        async with self.guard.hold("status", idea_id):
            current = await self.idea(idea_id)
            target = next_status(current.status)
            logger.info("Advancing idea", idea_id=idea_id, current=str(current.status), target=str(target))
            idea = await self.backend.update_idea(idea_id, status=target)
        self._invalidate(IDEAS, ADMIN_IDEAS, ADMIN_USERS, METRICS)
        return idea

    async def set_status_direct(self, idea_id: int, status: Status | str, admin_notes: str | None = None) -> Idea:
        """Set any status offered by the admin selector, bypassing the linear order."""
        require_admin_capable(self.user, "change idea status")
        target = validate_direct_status(status)
        async with self.guard.hold("status", idea_id):
            logger.info("Setting idea status", idea_id=idea_id, target=str(target))
            idea = await self.backend.update_idea(idea_id, status=target, admin_notes=admin_notes)
        self._invalidate(IDEAS, ADMIN_IDEAS, ADMIN_USERS, METRICS)
        return idea

    async def assign(
        self,
        idea_id: int,
        role: str,
        user_id: int | None = None,
        email: str | None = None,
    ) -> Idea:
        require_admin_capable(self.user, "assign ideas")
        form = validate_form(AssignmentForm, role=role, user_id=user_id, email=email)
        assignment = Assignment(idea_id=idea_id, role=form.role, user_id=form.user_id, email=form.email)
        idea = await self.backend.assign(assignment)
        self._invalidate(IDEAS, ADMIN_IDEAS, ADMIN_USERS)
        return idea

    async def follow(self, idea_id: int) -> None:
        require_user(self.user)
        await self.backend.follow(idea_id)
        self._invalidate(make_key("/api/ideas/my-follows"))

    async def unfollow(self, idea_id: int) -> None:
        require_user(self.user)
        await self.backend.unfollow(idea_id)
        self._invalidate(make_key("/api/ideas/my-follows"))

    # Comments

    async def add_comment(self, idea_id: int, content: str, parent_id: int | None = None) -> Comment:
        require_user(self.user)
        form = validate_form(CommentForm, content=content, parent_id=parent_id)
        async with self.guard.hold("comment", idea_id):
            comment = await self.backend.add_comment(idea_id, form.content, form.parent_id)
        self._invalidate(make_key(f"/api/ideas/{idea_id}"), COMMENTS)
        return comment

    async def reply(self, comment: Comment, content: str) -> Comment:
        return await self.add_comment(comment.idea_id, content, parent_id=comment.id)

    async def edit_comment(self, comment_id: int, content: str) -> Comment:
        require_user(self.user)
        form = validate_form(CommentForm, content=content)
        comment = await self.backend.update_comment(comment_id, form.content)
        self._invalidate(make_key(f"/api/ideas/{comment.idea_id}"), COMMENTS)
        return comment

    async def delete_comment(self, comment_id: int) -> None:
        require_admin_capable(self.user, "delete comments")
        await self.backend.delete_comment(comment_id)
        self._invalidate(IDEAS, COMMENTS)

    # Users

    async def delete_user(self, user_id: int) -> None:
        require_admin_capable(self.user, "delete users")
        await self.backend.delete_user(user_id)
        self._invalidate(ADMIN_USERS, LEADERBOARD)

    # Notifications

    async def mark_notification_read(self, notification_id: int) -> None:
        require_user(self.user)
        await self.backend.mark_notification_read(notification_id)
        self._invalidate(NOTIFICATIONS)

    async def mark_all_notifications_read(self) -> None:
        require_user(self.user)
        await self.backend.mark_all_notifications_read()
        self._invalidate(NOTIFICATIONS)
