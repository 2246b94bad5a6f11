"""Backend interface for the idea management API."""

from abc import ABC, abstractmethod
from pathlib import Path

from idea_manager.forms import IdeaForm, RegisterForm
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


class Backend(ABC):
    """Abstract base class for idea management backends.

    All methods are coroutines. Implementations own the session (cookies or
    equivalent) and raise ``idea_manager.errors`` exceptions on failure.
    """

    # Session

    @abstractmethod
    async def login(self, username: str, password: str) -> User:
        """Exchange credentials for a session and return the user."""
        pass

    @abstractmethod
    async def logout(self) -> None:
        """End the current session."""
        pass

    @abstractmethod
    async def register(self, form: RegisterForm) -> User:
        """Create an account and open a session for it."""
        pass

    @abstractmethod
    async def current_user(self) -> User | None:
        """Return the session's user, or None without a session."""
        pass

    @abstractmethod
    async def auth_check(self) -> bool:
        """Probe whether the session is valid for admin pages."""
        pass

    # Ideas

    @abstractmethod
    async def list_ideas(self) -> list[Idea]:
        """List all ideas."""
        pass

    @abstractmethod
    async def list_review_ideas(self) -> list[Idea]:
        """List ideas pending review."""
        pass

    @abstractmethod
    async def list_admin_ideas(self) -> list[Idea]:
        """List every idea with admin detail."""
        pass

    @abstractmethod
    async def get_idea(self, idea_id: int) -> Idea:
        """Read one idea, including its comments."""
        pass

    @abstractmethod
    async def create_idea(
        self,
        form: IdeaForm,
        attachment: Path | None = None,
        files: list[Path] | None = None,
    ) -> Idea:
        """Submit a new idea, optionally with an attachment and media files."""
        pass

    @abstractmethod
    async def update_idea(
        self,
        idea_id: int,
        status: Status | None = None,
        admin_notes: str | None = None,
    ) -> Idea:
        """Partially update an idea."""
        pass

    @abstractmethod
    async def vote(self, idea_id: int) -> VoteResult:
        """Vote for an idea."""
        pass

    @abstractmethod
    async def assign(self, assignment: Assignment) -> Idea:
        """Assign an idea to a user or email address under a role."""
        pass

    @abstractmethod
    async def search(self, query: str) -> list[Idea]:
        """Server-side search across ideas."""
        pass

    @abstractmethod
    async def my_votes(self) -> list[Idea]:
        """Ideas the session user voted for."""
        pass

    # Follows

    @abstractmethod
    async def follow(self, idea_id: int) -> None:
        pass

    @abstractmethod
    async def unfollow(self, idea_id: int) -> None:
        pass

    @abstractmethod
    async def is_following(self, idea_id: int) -> bool:
        pass

    @abstractmethod
    async def followed_ideas(self) -> list[Idea]:
        pass

    # Comments

    @abstractmethod
    async def list_comments(self, idea_id: int | None = None) -> list[Comment]:
        """List comments for one idea, or all comments when idea_id is None."""
        pass

    @abstractmethod
    async def add_comment(self, idea_id: int, content: str, parent_id: int | None = None) -> Comment:
        """Comment on an idea, or reply to a comment when parent_id is set."""
        pass

    @abstractmethod
    async def update_comment(self, comment_id: int, content: str) -> Comment:
        pass

    @abstractmethod
    async def delete_comment(self, comment_id: int) -> None:
        pass

    # Users

    @abstractmethod
    async def list_users(self) -> list[User]:
        """List all users (admin)."""
        pass

    @abstractmethod
    async def delete_user(self, user_id: int) -> None:
        pass

    @abstractmethod
    async def user_submissions(self, user_id: int) -> list[Idea]:
        pass

    # Dashboard

    @abstractmethod
    async def metrics(self) -> Metrics:
        pass

    @abstractmethod
    async def leaderboard(
        self,
        category: str | None = None,
        department: str | None = None,
        time_range: str | None = None,
    ) -> list[LeaderboardEntry]:
        pass

    @abstractmethod
    async def notifications(self, limit: int = 10, only_unread: bool = False) -> list[Notification]:
        pass

    @abstractmethod
    async def unread_notification_count(self) -> int:
        pass

    @abstractmethod
    async def mark_notification_read(self, notification_id: int) -> None:
        pass

    @abstractmethod
    async def mark_all_notifications_read(self) -> None:
        pass

    async def close(self) -> None:
        """Release any resources held by the backend."""
        return None
