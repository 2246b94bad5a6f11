"""Data models for idea manager.

Records arrive from the API with camelCase keys. Each model has a
``from_api`` constructor that validates enumerations and required keys at
the boundary, so the rest of the package only sees well-formed values.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from idea_manager.errors import InvalidPayload


class _ApiEnum(str, Enum):
    @classmethod
    def parse(cls, value: Any):
        """Return the member for ``value`` or raise InvalidPayload."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise InvalidPayload(f"Invalid {cls.__name__.lower()} {value!r}; expected one of: {allowed}") from None

    @property
    def label(self) -> str:
        return " ".join(word.capitalize() for word in self.value.split("-"))

    def __str__(self) -> str:
        return self.value


class Role(_ApiEnum):
    USER = "user"
    REVIEWER = "reviewer"
    TRANSFORMER = "transformer"
    IMPLEMENTER = "implementer"
    ADMIN = "admin"


ADMIN_CAPABLE_ROLES = frozenset({Role.ADMIN, Role.REVIEWER, Role.TRANSFORMER, Role.IMPLEMENTER})

# Roles an idea can be assigned under.
ASSIGNABLE_ROLES = (Role.REVIEWER, Role.TRANSFORMER, Role.IMPLEMENTER)


class Category(_ApiEnum):
    PAIN_POINT = "pain-point"
    OPPORTUNITY = "opportunity"
    CHALLENGE = "challenge"


class Status(_ApiEnum):
    SUBMITTED = "submitted"
    IN_REVIEW = "in-review"
    IN_REFINEMENT = "in-refinement"
    IMPLEMENTED = "implemented"
    CLOSED = "closed"
    MERGED = "merged"
    PARKED = "parked"


def parse_datetime(value: Any) -> datetime:
    """Parse an API timestamp. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidPayload(f"Invalid timestamp {value!r}") from None
    else:
        raise InvalidPayload(f"Invalid timestamp {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_datetime(value: Any) -> datetime | None:
    return parse_datetime(value) if value else None


def _require(data: dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise InvalidPayload(f"Expected {kind} object, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise InvalidPayload(f"{kind} is missing required field {key!r}")
    return data[key]


@dataclass
class UserSummary:
    """The slice of a user embedded in ideas and comments."""

    id: int
    display_name: str = ""
    username: str | None = None
    department: str | None = None
    avatar_url: str | None = None
    role: Role | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "UserSummary | None":
        if not data:
            return None
        role = data.get("role")
        return cls(
            id=_require(data, "id", "user"),
            display_name=data.get("displayName") or "",
            username=data.get("username"),
            department=data.get("department"),
            avatar_url=data.get("avatarUrl"),
            role=Role.parse(role) if role else None,
        )


@dataclass
class User:
    """An account known to the API."""

    id: int
    username: str
    role: Role = Role.USER
    display_name: str | None = None
    department: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=_require(data, "id", "user"),
            username=_require(data, "username", "user"),
            role=Role.parse(data.get("role") or Role.USER),
            display_name=data.get("displayName"),
            department=data.get("department"),
            email=data.get("email"),
            avatar_url=data.get("avatarUrl"),
        )

    @property
    def name(self) -> str:
        return self.display_name or self.username

    def summary(self) -> UserSummary:
        return UserSummary(
            id=self.id,
            display_name=self.name,
            username=self.username,
            department=self.department,
            avatar_url=self.avatar_url,
            role=self.role,
        )


@dataclass
class MediaUrl:
    type: str
    url: str


@dataclass
class Comment:
    """A comment on an idea. Replies point at their parent via parent_id."""

    id: int
    idea_id: int
    user_id: int
    content: str
    created_at: datetime
    parent_id: int | None = None
    user: UserSummary | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            id=_require(data, "id", "comment"),
            idea_id=_require(data, "ideaId", "comment"),
            user_id=_require(data, "userId", "comment"),
            content=_require(data, "content", "comment"),
            created_at=parse_datetime(_require(data, "createdAt", "comment")),
            parent_id=data.get("parentId"),
            user=UserSummary.from_api(data.get("user")),
        )


@dataclass
class Idea:
    """A submitted idea, pain point or challenge."""

    id: int
    title: str
    description: str
    category: Category
    submitted_by_id: int
    created_at: datetime
    status: Status = Status.SUBMITTED
    priority: str | None = None
    department: str | None = None
    tags: list[str] = field(default_factory=list)
    impact: str | None = None
    inspiration: str | None = None
    similar_solutions: str | None = None
    admin_notes: str | None = None
    attachment_url: str | None = None
    media_urls: list[MediaUrl] = field(default_factory=list)
    votes: int = 0
    assigned_to_id: int | None = None
    updated_at: datetime | None = None
    impact_score: int | None = None
    cost_saved: int | None = None
    revenue_generated: int | None = None
    submitter: UserSummary | None = None
    assigned_to: UserSummary | None = None
    comments: list[Comment] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Idea":
        votes = data.get("votes") or 0
        if not isinstance(votes, int) or votes < 0:
            raise InvalidPayload(f"Invalid vote count {votes!r}")
        return cls(
            id=_require(data, "id", "idea"),
            title=_require(data, "title", "idea"),
            description=_require(data, "description", "idea"),
            category=Category.parse(_require(data, "category", "idea")),
            submitted_by_id=_require(data, "submittedById", "idea"),
            created_at=parse_datetime(_require(data, "createdAt", "idea")),
            status=Status.parse(data.get("status") or Status.SUBMITTED),
            priority=data.get("priority"),
            department=data.get("department"),
            tags=list(data.get("tags") or []),
            impact=data.get("impact"),
            inspiration=data.get("inspiration"),
            similar_solutions=data.get("similarSolutions"),
            admin_notes=data.get("adminNotes"),
            attachment_url=data.get("attachmentUrl"),
            media_urls=[MediaUrl(type=m["type"], url=m["url"]) for m in data.get("mediaUrls") or []],
            votes=votes,
            assigned_to_id=data.get("assignedToId"),
            updated_at=_optional_datetime(data.get("updatedAt")),
            impact_score=data.get("impactScore"),
            cost_saved=data.get("costSaved"),
            revenue_generated=data.get("revenueGenerated"),
            submitter=UserSummary.from_api(data.get("submitter")),
            assigned_to=UserSummary.from_api(data.get("assignedTo")),
            comments=[Comment.from_api(c) for c in data.get("comments") or []],
        )


@dataclass
class Assignment:
    """An idea assigned to a user, or to an email address, under a role."""

    idea_id: int
    role: Role
    user_id: int | None = None
    email: str | None = None

    def wire_user_id(self) -> str:
        """The userId value sent to the API; email assignments use a prefix."""
        if self.email:
            return f"email:{self.email}"
        return str(self.user_id)


@dataclass
class Metrics:
    ideas_submitted: int = 0
    in_review: int = 0
    implemented: int = 0
    cost_saved: int = 0
    revenue_generated: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Metrics":
        return cls(
            ideas_submitted=data.get("ideasSubmitted", 0),
            in_review=data.get("inReview", 0),
            implemented=data.get("implemented", 0),
            cost_saved=data.get("costSaved", 0),
            revenue_generated=data.get("revenueGenerated", 0),
        )


@dataclass
class Notification:
    id: int
    user_id: int
    title: str
    message: str
    type: str
    created_at: datetime
    is_read: bool = False
    related_item_id: int | None = None
    related_item_type: str | None = None
    actor_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Notification":
        return cls(
            id=_require(data, "id", "notification"),
            user_id=_require(data, "userId", "notification"),
            title=data.get("title") or "",
            message=data.get("message") or "",
            type=data.get("type") or "",
            created_at=parse_datetime(_require(data, "createdAt", "notification")),
            is_read=bool(data.get("isRead")),
            related_item_id=data.get("relatedItemId"),
            related_item_type=data.get("relatedItemType"),
            actor_id=data.get("actorId"),
        )


@dataclass
class LeaderboardEntry:
    user: UserSummary
    ideas_submitted: int = 0
    ideas_implemented: int = 0
    impact_score: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "LeaderboardEntry":
        user = UserSummary.from_api(_require(data, "user", "leaderboard entry"))
        return cls(
            user=user,
            ideas_submitted=data.get("ideasSubmitted", 0),
            ideas_implemented=data.get("ideasImplemented", 0),
            impact_score=data.get("impactScore", 0),
        )


@dataclass
class VoteResult:
    """Outcome of a vote; already_voted is set when the backend deduplicated it."""

    idea: Idea
    already_voted: bool = False
