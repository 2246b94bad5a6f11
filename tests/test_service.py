"""Tests for IdeaService using the in-memory backend."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from idea_manager.backends.memory import MemoryBackend
from idea_manager.errors import (
    ActionInFlight,
    AdminAccessDenied,
    ApiError,
    CapabilityDenied,
    NotAuthenticated,
    NotFound,
    ValidationFailed,
)
from idea_manager.models import Category, Role, Status
from idea_manager.service import IDEAS, IdeaService

PASSWORD = "secret123"


class BlockingBackend(MemoryBackend):
    """Memory backend whose votes wait until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def vote(self, idea_id):
        self.entered.set()
        await self.release.wait()
        return await super().vote(idea_id)


class SlowListBackend(MemoryBackend):
    """Memory backend whose idea listing waits until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_ideas(self):
        ideas = await super().list_ideas()
        self.entered.set()
        await self.release.wait()
        return ideas


def _seed(backend: MemoryBackend) -> MemoryBackend:
    backend.add_user("ada", PASSWORD, Role.ADMIN, display_name="Ada", department="IT")
    bob = backend.add_user("bob", PASSWORD, display_name="Bob", department="Sales")
    backend.add_user("lee", PASSWORD, Role.IMPLEMENTER, display_name="Lee", email="lee@example.com")
    backend.add_idea(
        "Shared car pool",
        "Employees could share rides to the office every day.",
        Category.OPPORTUNITY,
        bob.id,
    )
    return backend


@pytest.fixture
def backend() -> MemoryBackend:
    """A backend with an admin, a user, an implementer and one idea."""
    return _seed(MemoryBackend())


@pytest.fixture
def service(backend: MemoryBackend) -> IdeaService:
    return IdeaService(backend)


async def test_admin_login_refuses_plain_user(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that a user role is logged out again after the admin login."""
    with pytest.raises(AdminAccessDenied, match="admin privileges"):
        await service.admin_login("bob", PASSWORD)

    assert service.user is None
    assert await backend.current_user() is None
    assert len(service.cache) == 0


async def test_admin_login_wraps_logout_failure(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that a failed forced logout still reports missing privileges."""
    backend.logout = AsyncMock(side_effect=ApiError(500, "boom"))
    with pytest.raises(AdminAccessDenied):
        await service.admin_login("bob", PASSWORD)
    assert service.user is None


async def test_admin_login(service: IdeaService) -> None:
    """Test a successful admin login."""
    user = await service.admin_login("ada", PASSWORD)
    assert user.role is Role.ADMIN
    assert service.user is user
    assert await service.auth_check()


async def test_login_validation(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that blank credentials never reach the backend."""
    backend.login = AsyncMock()
    with pytest.raises(ValidationFailed):
        await service.login("", "")
    backend.login.assert_not_called()


async def test_login_wrong_password(service: IdeaService) -> None:
    """Test that a bad password is an authentication error."""
    with pytest.raises(NotAuthenticated):
        await service.login("ada", "nope")
    assert service.user is None


async def test_advance_twice(service: IdeaService) -> None:
    """Test two linear advances from submitted."""
    await service.login("ada", PASSWORD)
    assert (await service.idea(1)).status is Status.SUBMITTED

    assert (await service.advance_linear(1)).status is Status.IN_REVIEW
    assert (await service.advance_linear(1)).status is Status.IN_REFINEMENT
    assert (await service.idea(1)).status is Status.IN_REFINEMENT


async def test_advance_from_closed_restarts(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that advancing a closed idea returns it to submitted."""
    backend.ideas[1].status = Status.CLOSED
    await service.login("ada", PASSWORD)
    assert (await service.advance_linear(1)).status is Status.SUBMITTED


async def test_advance_requires_admin(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that a plain user cannot advance and nothing changes."""
    await service.login("bob", PASSWORD)
    backend.update_idea = AsyncMock()

    with pytest.raises(CapabilityDenied):
        await service.advance_linear(1)
    backend.update_idea.assert_not_called()
    assert backend.ideas[1].status is Status.SUBMITTED


async def test_set_status_direct(service: IdeaService, backend: MemoryBackend) -> None:
    """Test jumping straight to a selector status."""
    await service.login("ada", PASSWORD)
    idea = await service.set_status_direct(1, "parked", admin_notes="Revisit next year")
    assert idea.status is Status.PARKED
    assert idea.admin_notes == "Revisit next year"

    with pytest.raises(ValidationFailed):
        await service.set_status_direct(1, "closed")
    assert backend.ideas[1].status is Status.PARKED


async def test_failed_mutation_keeps_cache(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that the cache is only invalidated after a successful mutation."""
    await service.login("ada", PASSWORD)
    before = await service.ideas()
    assert IDEAS in service.cache

    backend.update_idea = AsyncMock(side_effect=ApiError(500, "Internal Server Error"))
    with pytest.raises(ApiError):
        await service.set_status_direct(1, "merged")

    assert IDEAS in service.cache
    assert await service.ideas() is before
    assert not service.guard.is_active("status", 1)


async def test_mutation_invalidates_cache(service: IdeaService) -> None:
    """Test that reads after a mutation see the new state."""
    await service.login("ada", PASSWORD)
    assert (await service.ideas())[0].votes == 0
    await service.vote(1)
    assert IDEAS not in service.cache
    assert (await service.ideas())[0].votes == 1


async def test_concurrent_vote_rejected() -> None:
    """Test that a second vote on the same idea is rejected while the first is pending."""
    backend = _seed(BlockingBackend())
    service = IdeaService(backend)
    await service.login("ada", PASSWORD)

    first = asyncio.create_task(service.vote(1))
    await backend.entered.wait()
    assert service.guard.is_active("vote", 1)
    with pytest.raises(ActionInFlight):
        await service.vote(1)

    backend.release.set()
    result = await first
    assert result.idea.votes == 1
    assert not service.guard.is_active("vote", 1)


async def test_vote_once_per_user(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that repeat votes are reported and not counted."""
    await service.login("ada", PASSWORD)
    assert not (await service.vote(1)).already_voted
    again = await service.vote(1)
    assert again.already_voted
    assert again.idea.votes == 1
    assert [idea.id for idea in await service.my_votes()] == [1]


async def test_vote_requires_login(service: IdeaService) -> None:
    """Test that voting needs a session."""
    with pytest.raises(NotAuthenticated):
        await service.vote(1)


async def test_assign_by_email(service: IdeaService, backend: MemoryBackend) -> None:
    """Test assigning an idea to a user found by email."""
    await service.login("ada", PASSWORD)
    idea = await service.assign(1, "implementer", email="lee@example.com")
    assert idea.assigned_to is not None
    assert idea.assigned_to.display_name == "Lee"
    assert backend.ideas[1].assigned_to_id == 3


async def test_assign_validation(service: IdeaService) -> None:
    """Test assignment input rules."""
    await service.login("ada", PASSWORD)
    with pytest.raises(ValidationFailed):
        await service.assign(1, "admin", user_id=3)
    with pytest.raises(ValidationFailed):
        await service.assign(1, "reviewer")


async def test_submit_idea(service: IdeaService) -> None:
    """Test submitting a valid idea."""
    await service.login("bob", PASSWORD)
    idea = await service.submit_idea(
        title="Quiet rooms",
        description="Open offices need a few rooms for focused work.",
        category="pain-point",
        tags=["office"],
    )
    assert idea.status is Status.SUBMITTED
    assert idea.submitted_by_id == 2
    assert len(await service.ideas()) == 2


async def test_submit_invalid_idea(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that invalid input is rejected before the backend is called."""
    await service.login("bob", PASSWORD)
    backend.create_idea = AsyncMock()
    with pytest.raises(ValidationFailed) as exc_info:
        await service.submit_idea(title="Hi", description="short", category="opportunity")
    assert set(exc_info.value.errors) == {"title", "description"}
    backend.create_idea.assert_not_called()


async def test_comments_and_replies(service: IdeaService) -> None:
    """Test commenting, replying and building the thread."""
    await service.login("bob", PASSWORD)
    top = await service.add_comment(1, "Who would organise it?")
    reply = await service.reply(top, "HR could")
    await service.add_comment(1, "Sounds good")

    assert reply.parent_id == top.id
    tree = await service.comment_tree(1)
    assert [node.comment.content for node in tree] == ["Who would organise it?", "Sounds good"]
    assert [node.comment.content for node in tree[0].replies] == ["HR could"]

    edited = await service.edit_comment(reply.id, "HR or Facilities could")
    assert edited.content == "HR or Facilities could"
    assert (await service.comments(1))[1].content == "HR or Facilities could"


async def test_delete_comment_requires_admin(service: IdeaService) -> None:
    """Test that only admins delete comments through the service."""
    await service.login("bob", PASSWORD)
    comment = await service.add_comment(1, "Typo")
    with pytest.raises(CapabilityDenied):
        await service.delete_comment(comment.id)

    await service.login("ada", PASSWORD)
    await service.delete_comment(comment.id)
    assert await service.comments(1) == []


async def test_find_ideas(service: IdeaService, backend: MemoryBackend) -> None:
    """Test filtered, paginated idea views."""
    for n in range(24):
        backend.add_idea(f"Idea number {n}", "A description long enough to pass.", Category.CHALLENGE, 1)
    page = await service.find_ideas(category="challenge", page=5)
    assert page.total_items == 24
    assert page.total_pages == 3
    assert page.page == 3
    assert len(page.items) == 4

    page = await service.find_ideas(query="car pool")
    assert [idea.id for idea in page.items] == [1]

    with pytest.raises(ValueError):
        await service.find_ideas(source="archive")


async def test_review_queue(service: IdeaService, backend: MemoryBackend) -> None:
    """Test SLA labels on the review queue."""
    now = datetime(2024, 6, 10, tzinfo=timezone.utc)
    backend.ideas[1].created_at = now - timedelta(days=4)
    backend.add_idea("Newer idea", "A description long enough to pass.", Category.CHALLENGE, 2, created_at=now)
    backend.add_idea(
        "Reviewed idea", "A description long enough to pass.", Category.CHALLENGE, 2, status=Status.IN_REVIEW
    )
    await service.login("ada", PASSWORD)

    queue = await service.review_queue(now)
    assert [(idea.id, sla.label) for idea, sla in queue] == [(1, "Overdue"), (2, "3 days left")]


async def test_review_queue_requires_admin(service: IdeaService) -> None:
    """Test that the review queue is admin only."""
    await service.login("bob", PASSWORD)
    with pytest.raises(CapabilityDenied):
        await service.review_queue()


async def test_notifications(service: IdeaService) -> None:
    """Test notifications for votes and status changes by others."""
    await service.login("ada", PASSWORD)
    await service.vote(1)
    await service.advance_linear(1)

    await service.login("bob", PASSWORD)
    await service.vote(1)
    notifications = await service.notifications()
    assert [n.type for n in notifications] == ["status_change", "vote"]
    assert await service.unread_notification_count() == 2

    await service.mark_notification_read(notifications[0].id)
    assert await service.unread_notification_count() == 1
    await service.mark_all_notifications_read()
    assert await service.unread_notification_count() == 0


async def test_follow(service: IdeaService) -> None:
    """Test following and unfollowing an idea."""
    await service.login("ada", PASSWORD)
    assert await service.followed_ideas() == []
    await service.follow(1)
    assert await service.is_following(1)
    assert [idea.id for idea in await service.followed_ideas()] == [1]
    await service.unfollow(1)
    assert await service.followed_ideas() == []


async def test_users_and_delete(service: IdeaService) -> None:
    """Test the admin user views."""
    await service.login("ada", PASSWORD)
    page = await service.find_users(query="lee")
    assert [user.username for user in page.items] == ["lee"]
    assert [idea.id for idea in await service.user_submissions(2)] == [1]

    await service.delete_user(3)
    assert [user.username for user in await service.users()] == ["ada", "bob"]


async def test_logout_clears_session(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that logout drops the user and the cache."""
    await service.login("ada", PASSWORD)
    await service.ideas()
    await service.logout()
    assert service.user is None
    assert len(service.cache) == 0
    assert await service.restore_session() is None


async def test_read_overlapping_mutation_is_not_cached() -> None:
    """Test that a listing fetched before a status change is not served afterwards."""
    backend = _seed(SlowListBackend())
    service = IdeaService(backend)
    await service.login("ada", PASSWORD)

    pending = asyncio.create_task(service.ideas())
    await backend.entered.wait()
    await service.set_status_direct(1, "parked")
    backend.release.set()

    assert (await pending)[0].status is Status.SUBMITTED
    assert IDEAS not in service.cache
    assert (await service.ideas())[0].status is Status.PARKED


async def test_status_change_refreshes_submissions(service: IdeaService) -> None:
    """Test that a user's cached submissions show a new status."""
    await service.login("ada", PASSWORD)
    assert (await service.user_submissions(2))[0].status is Status.SUBMITTED

    await service.advance_linear(1)
    assert (await service.user_submissions(2))[0].status is Status.IN_REVIEW

    await service.assign(1, "implementer", email="lee@example.com")
    submission = (await service.user_submissions(2))[0]
    assert submission.assigned_to is not None
    assert submission.assigned_to.display_name == "Lee"


async def test_notifications_are_per_user(service: IdeaService, backend: MemoryBackend) -> None:
    """Test that another user's notification cannot be marked read."""
    await service.login("ada", PASSWORD)
    await service.vote(1)

    await service.login("bob", PASSWORD)
    [notification] = await service.notifications()
    assert notification.type == "vote"
    assert notification.actor_id == 1

    await service.login("ada", PASSWORD)
    assert await service.notifications() == []
    with pytest.raises(NotFound):
        await service.mark_notification_read(notification.id)

    await service.login("bob", PASSWORD)
    assert await service.unread_notification_count() == 1
