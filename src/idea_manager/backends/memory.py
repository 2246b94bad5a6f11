"""In-process backend holding ideas, users and comments in memory.

It follows the server's rules where the client cannot see them: one vote
per user per idea, notifications for votes and status changes made by
someone else, and admin-only routes answering 403 to other roles.
"""

import itertools
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import structlog

from idea_manager.access import is_admin_capable
from idea_manager.backend import Backend
from idea_manager.errors import ApiError, CapabilityDenied, NotAuthenticated, NotFound
from idea_manager.forms import IdeaForm, RegisterForm
from idea_manager.models import (
    Assignment,
    Category,
    Comment,
    Idea,
    LeaderboardEntry,
    MediaUrl,
    Metrics,
    Notification,
    Role,
    Status,
    User,
    VoteResult,
)

logger = structlog.get_logger()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryBackend(Backend):
    """Backend storing everything in dictionaries for the life of the process."""

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.ideas: dict[int, Idea] = {}
        self.comments: dict[int, Comment] = {}
        self._notifications: dict[int, Notification] = {}
        self._passwords: dict[str, str] = {}
        self._votes: set[tuple[int, int]] = set()
        self._follows: set[tuple[int, int]] = set()
        self._ids = {
            "user": itertools.count(1),
            "idea": itertools.count(1),
            "comment": itertools.count(1),
            "notification": itertools.count(1),
        }
        self._session_user_id: int | None = None
        logger.debug("Memory backend initialized")

    # Helpers

    def add_user(
        self,
        username: str,
        password: str,
        role: Role = Role.USER,
        display_name: str | None = None,
        department: str | None = None,
        email: str | None = None,
    ) -> User:
        """Create an account directly, bypassing registration."""
        if username in self._passwords:
            raise ApiError(400, "Username already exists")
        user = User(
            id=next(self._ids["user"]),
            username=username,
            role=role,
            display_name=display_name or username,
            department=department,
            email=email,
        )
        self.users[user.id] = user
        self._passwords[username] = password
        logger.debug("User added", user_id=user.id, role=str(role))
        return user

    def add_idea(
        self,
        title: str,
        description: str,
        category: Category,
        submitted_by_id: int,
        status: Status = Status.SUBMITTED,
        created_at: datetime | None = None,
        **extra,
    ) -> Idea:
        """Store an idea directly, bypassing validation."""
        idea = Idea(
            id=next(self._ids["idea"]),
            title=title,
            description=description,
            category=category,
            submitted_by_id=submitted_by_id,
            created_at=created_at or _now(),
            status=status,
            **extra,
        )
        self.ideas[idea.id] = idea
        return idea

    def _session_user(self) -> User:
        user = self.users.get(self._session_user_id) if self._session_user_id else None
        if user is None:
            raise NotAuthenticated("Unauthorized")
        return user

    def _admin_user(self) -> User:
        user = self._session_user()
        if not is_admin_capable(user.role):
            raise CapabilityDenied("Forbidden")
        return user

    def _idea(self, idea_id: int) -> Idea:
        idea = self.ideas.get(idea_id)
        if idea is None:
            raise NotFound(404, "Idea not found")
        return idea

    def _comment(self, comment_id: int) -> Comment:
        comment = self.comments.get(comment_id)
        if comment is None:
            raise NotFound(404, "Comment not found")
        return comment

    def _view(self, idea: Idea, with_comments: bool = False) -> Idea:
        """Copy of ``idea`` with submitter, assignee and optionally comments attached."""
        submitter = self.users.get(idea.submitted_by_id)
        assignee = self.users.get(idea.assigned_to_id) if idea.assigned_to_id else None
        comments = self._comments_for(idea.id) if with_comments else []
        return replace(
            idea,
            tags=list(idea.tags),
            submitter=submitter.summary() if submitter else None,
            assigned_to=assignee.summary() if assignee else None,
            comments=comments,
        )

    def _comment_view(self, comment: Comment) -> Comment:
        author = self.users.get(comment.user_id)
        return replace(comment, user=author.summary() if author else None)

    def _comments_for(self, idea_id: int | None) -> list[Comment]:
        return [
            self._comment_view(c) for c in self.comments.values() if idea_id is None or c.idea_id == idea_id
        ]

    def _notify(self, user_id: int, actor: User, title: str, message: str, type_: str, idea: Idea) -> None:
        if user_id == actor.id:
            return
        notification = Notification(
            id=next(self._ids["notification"]),
            user_id=user_id,
            title=title,
            message=message,
            type=type_,
            created_at=_now(),
            related_item_id=idea.id,
            related_item_type="idea",
            actor_id=actor.id,
        )
        self._notifications[notification.id] = notification

    # Session

    async def login(self, username: str, password: str) -> User:
        logger.info("Logging in", username=username)
        if self._passwords.get(username) != password:
            raise NotAuthenticated("Invalid username or password")
        user = next(u for u in self.users.values() if u.username == username)
        self._session_user_id = user.id
        return user

    async def logout(self) -> None:
        self._session_user_id = None

    async def register(self, form: RegisterForm) -> User:
        user = self.add_user(
            form.username,
            form.password,
            display_name=form.display_name,
            department=form.department,
            email=form.email,
        )
        self._session_user_id = user.id
        return user

    async def current_user(self) -> User | None:
        return self.users.get(self._session_user_id) if self._session_user_id else None

    async def auth_check(self) -> bool:
        user = await self.current_user()
        return user is not None and is_admin_capable(user.role)

    # Ideas

    async def list_ideas(self) -> list[Idea]:
        return [self._view(idea) for idea in self.ideas.values()]

    async def list_review_ideas(self) -> list[Idea]:
        self._admin_user()
        return [self._view(idea) for idea in self.ideas.values() if idea.status == Status.SUBMITTED]

    async def list_admin_ideas(self) -> list[Idea]:
        self._admin_user()
        return [self._view(idea) for idea in self.ideas.values()]

    async def get_idea(self, idea_id: int) -> Idea:
        return self._view(self._idea(idea_id), with_comments=True)

    async def create_idea(
        self,
        form: IdeaForm,
        attachment: Path | None = None,
        files: list[Path] | None = None,
    ) -> Idea:
        user = self._session_user()
        media = [MediaUrl(type="file", url=f"memory://{path.name}") for path in files or []]
        idea = self.add_idea(
            form.title,
            form.description,
            form.category,
            user.id,
            department=form.department or "Other",
            priority=form.priority or "medium",
            tags=list(form.tags),
            impact=form.impact,
            inspiration=form.inspiration,
            similar_solutions=form.similar_solutions,
            admin_notes=form.admin_notes,
            attachment_url=f"memory://{attachment.name}" if attachment else None,
            media_urls=media,
        )
        logger.info("Idea created", idea_id=idea.id)
        return self._view(idea)

    async def update_idea(
        self,
        idea_id: int,
        status: Status | None = None,
        admin_notes: str | None = None,
    ) -> Idea:
        user = self._session_user()
        idea = self._idea(idea_id)
        if idea.submitted_by_id != user.id and not is_admin_capable(user.role):
            raise CapabilityDenied("Forbidden")

        old_status = idea.status
        if status is not None:
            idea.status = Status.parse(status)
        if admin_notes is not None:
            idea.admin_notes = admin_notes
        idea.updated_at = _now()

        if status is not None and idea.status != old_status and is_admin_capable(user.role):
            self._notify(
                idea.submitted_by_id,
                user,
                "Status updated on your submission",
                f'{user.name} changed the status of "{idea.title}" to {idea.status}',
                "status_change",
                idea,
            )
        return self._view(idea)

    async def vote(self, idea_id: int) -> VoteResult:
        user = self._session_user()
        idea = self._idea(idea_id)
        if (user.id, idea_id) in self._votes:
            return VoteResult(idea=self._view(idea), already_voted=True)
        self._votes.add((user.id, idea_id))
        idea.votes += 1
        self._notify(
            idea.submitted_by_id, user, "New vote on your idea", f"{user.name} voted on your idea: {idea.title}", "vote", idea
        )
        return VoteResult(idea=self._view(idea))

    async def assign(self, assignment: Assignment) -> Idea:
        self._admin_user()
        idea = self._idea(assignment.idea_id)
        if assignment.email:
            target = next((u for u in self.users.values() if u.email == assignment.email), None)
        else:
            target = self.users.get(assignment.user_id)
        if target is None:
            raise NotFound(404, "User not found")
        idea.assigned_to_id = target.id
        idea.updated_at = _now()
        return self._view(idea)

    async def search(self, query: str) -> list[Idea]:
        if not query:
            raise ApiError(400, 'Query parameter "q" is required')
        needle = query.lower()
        return [
            self._view(idea)
            for idea in self.ideas.values()
            if needle in idea.title.lower()
            or needle in idea.description.lower()
            or any(needle in tag.lower() for tag in idea.tags)
        ]

    async def my_votes(self) -> list[Idea]:
        user = self._session_user()
        return [self._view(self.ideas[idea_id]) for uid, idea_id in sorted(self._votes) if uid == user.id]

    # Follows

    async def follow(self, idea_id: int) -> None:
        user = self._session_user()
        self._idea(idea_id)
        self._follows.add((user.id, idea_id))

    async def unfollow(self, idea_id: int) -> None:
        user = self._session_user()
        self._follows.discard((user.id, idea_id))

    async def is_following(self, idea_id: int) -> bool:
        user = self._session_user()
        return (user.id, idea_id) in self._follows

    async def followed_ideas(self) -> list[Idea]:
        user = self._session_user()
        return [self._view(self.ideas[idea_id]) for uid, idea_id in sorted(self._follows) if uid == user.id]

    # Comments

    async def list_comments(self, idea_id: int | None = None) -> list[Comment]:
        if idea_id is None:
            self._admin_user()
        else:
            self._idea(idea_id)
        return self._comments_for(idea_id)

    async def add_comment(self, idea_id: int, content: str, parent_id: int | None = None) -> Comment:
        user = self._session_user()
        idea = self._idea(idea_id)
        if parent_id is not None and self._comment(parent_id).idea_id != idea_id:
            raise ApiError(400, "Parent comment belongs to another idea")
        comment = Comment(
            id=next(self._ids["comment"]),
            idea_id=idea.id,
            user_id=user.id,
            content=content,
            created_at=_now(),
            parent_id=parent_id,
        )
        self.comments[comment.id] = comment
        return self._comment_view(comment)

    async def update_comment(self, comment_id: int, content: str) -> Comment:
        user = self._session_user()
        comment = self._comment(comment_id)
        if comment.user_id != user.id and not is_admin_capable(user.role):
            raise CapabilityDenied("Forbidden")
        comment.content = content
        return self._comment_view(comment)

    async def delete_comment(self, comment_id: int) -> None:
        user = self._session_user()
        comment = self._comment(comment_id)
        if comment.user_id != user.id and not is_admin_capable(user.role):
            raise CapabilityDenied("Forbidden")
        del self.comments[comment_id]

    # Users

    async def list_users(self) -> list[User]:
        self._admin_user()
        return list(self.users.values())

    async def delete_user(self, user_id: int) -> None:
        self._admin_user()
        user = self.users.pop(user_id, None)
        if user is None:
            raise NotFound(404, "User not found")
        self._passwords.pop(user.username, None)

    async def user_submissions(self, user_id: int) -> list[Idea]:
        self._admin_user()
        return [self._view(idea) for idea in self.ideas.values() if idea.submitted_by_id == user_id]

    # Dashboard

    async def metrics(self) -> Metrics:
        ideas = list(self.ideas.values())
        return Metrics(
            ideas_submitted=len(ideas),
            in_review=sum(1 for idea in ideas if idea.status == Status.IN_REVIEW),
            implemented=sum(1 for idea in ideas if idea.status == Status.IMPLEMENTED),
            cost_saved=sum(idea.cost_saved or 0 for idea in ideas),
            revenue_generated=sum(idea.revenue_generated or 0 for idea in ideas),
        )

    async def leaderboard(
        self,
        category: str | None = None,
        department: str | None = None,
        time_range: str | None = None,
    ) -> list[LeaderboardEntry]:
        entries = []
        for user in self.users.values():
            if department and user.department != department:
                continue
            ideas = [
                idea
                for idea in self.ideas.values()
                if idea.submitted_by_id == user.id and (not category or idea.category == category)
            ]
            if not ideas:
                continue
            entries.append(
                LeaderboardEntry(
                    user=user.summary(),
                    ideas_submitted=len(ideas),
                    ideas_implemented=sum(1 for idea in ideas if idea.status == Status.IMPLEMENTED),
                    impact_score=sum(idea.impact_score or 0 for idea in ideas),
                )
            )
        entries.sort(key=lambda e: (e.ideas_implemented, e.ideas_submitted), reverse=True)
        return entries

    async def notifications(self, limit: int = 10, only_unread: bool = False) -> list[Notification]:
        user = self._session_user()
        items = [
            n for n in self._notifications.values() if n.user_id == user.id and not (only_unread and n.is_read)
        ]
        items.sort(key=lambda n: n.id, reverse=True)
        return items[:limit]

    async def unread_notification_count(self) -> int:
        user = self._session_user()
        return sum(1 for n in self._notifications.values() if n.user_id == user.id and not n.is_read)

    async def mark_notification_read(self, notification_id: int) -> None:
        user = self._session_user()
        notification = self._notifications.get(notification_id)
        if notification is None or notification.user_id != user.id:
            raise NotFound(404, "Notification not found")
        notification.is_read = True

    async def mark_all_notifications_read(self) -> None:
        user = self._session_user()
        for notification in self._notifications.values():
            if notification.user_id == user.id:
                notification.is_read = True
