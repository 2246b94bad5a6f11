"""Tests for filtering and pagination."""

from datetime import datetime, timezone

import pytest

from idea_manager.filters import filter_comments, filter_ideas, filter_users, paginate
from idea_manager.models import Category, Comment, Idea, Role, Status, User, UserSummary

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _idea(idea_id: int, title: str, status: Status, category: Category, **kwargs) -> Idea:
    return Idea(
        id=idea_id,
        title=title,
        description=kwargs.pop("description", f"Description of {title.lower()}"),
        category=category,
        status=status,
        submitted_by_id=kwargs.pop("submitted_by_id", 1),
        created_at=CREATED,
        **kwargs,
    )


@pytest.fixture
def ideas() -> list[Idea]:
    """A mixed set of ideas."""
    return [
        _idea(1, "Faster onboarding", Status.SUBMITTED, Category.PAIN_POINT, department="HR"),
        _idea(2, "Shared car pool", Status.SUBMITTED, Category.OPPORTUNITY, submitted_by_id=2),
        _idea(3, "Reduce printing", Status.IN_REVIEW, Category.PAIN_POINT, description="Paper waste in ONBOARDING"),
        _idea(
            4,
            "Hackathon",
            Status.IMPLEMENTED,
            Category.CHALLENGE,
            submitter=UserSummary(id=3, display_name="Kim", department="HR"),
            submitted_by_id=3,
        ),
    ]


def test_no_filters_returns_everything(ideas: list[Idea]) -> None:
    """Test that empty constraints impose nothing."""
    assert filter_ideas(ideas) == ideas
    assert filter_ideas(ideas, query="", status="", category=None) == ideas


def test_query_matches_title_and_description(ideas: list[Idea]) -> None:
    """Test case-insensitive search over title and description."""
    assert [i.id for i in filter_ideas(ideas, query="onboarding")] == [1, 3]


def test_status_and_category(ideas: list[Idea]) -> None:
    """Test that constraints compose as an intersection."""
    both = filter_ideas(ideas, status="submitted", category="pain-point")
    by_status = filter_ideas(ideas, status="submitted")
    by_category = filter_ideas(ideas, category="pain-point")
    assert both == [i for i in by_status if i in by_category]
    assert [i.id for i in both] == [1]


def test_user_and_department(ideas: list[Idea]) -> None:
    """Test submitter and department constraints."""
    assert [i.id for i in filter_ideas(ideas, user_id=2)] == [2]
    # Idea 4 has no department of its own but its submitter is in HR.
    assert [i.id for i in filter_ideas(ideas, department="HR")] == [1, 4]


def test_idempotent(ideas: list[Idea]) -> None:
    """Test that filtering twice changes nothing."""
    once = filter_ideas(ideas, query="o", status="submitted")
    assert filter_ideas(once, query="o", status="submitted") == once


def test_filter_comments() -> None:
    """Test comment search over content and author names."""
    comments = [
        Comment(1, 1, 10, "Great idea", CREATED, user=UserSummary(id=10, display_name="Rosa", username="rmiller")),
        Comment(2, 1, 11, "Needs budget", CREATED, user=UserSummary(id=11, display_name="Tom", username="tom")),
        Comment(3, 2, 10, "Follow up", CREATED),
    ]
    assert [c.id for c in filter_comments(comments, query="MILLER")] == [1]
    assert [c.id for c in filter_comments(comments, query="budget")] == [2]
    assert [c.id for c in filter_comments(comments, user_id=10)] == [1, 3]
    assert [c.id for c in filter_comments(comments, idea_id=2)] == [3]


def test_filter_users() -> None:
    """Test user search over display name, username and email."""
    users = [
        User(1, "ada", Role.ADMIN, display_name="Ada Lovelace", email="ada@example.com"),
        User(2, "bob", Role.USER, display_name="Bob", department="Sales"),
        User(3, "cy", Role.REVIEWER, email="cy@corp.example"),
    ]
    assert [u.id for u in filter_users(users, query="lovelace")] == [1]
    assert [u.id for u in filter_users(users, query="corp")] == [3]
    assert [u.id for u in filter_users(users, role="reviewer")] == [3]
    assert [u.id for u in filter_users(users, department="Sales")] == [2]


def test_paginate() -> None:
    """Test page slicing and page counts."""
    items = list(range(1, 26))
    page = paginate(items, page=2, page_size=10)
    assert page.items == list(range(11, 21))
    assert page.total_pages == 3
    assert page.total_items == 25
    assert (page.first_index, page.last_index) == (11, 20)


def test_paginate_clamps_out_of_range() -> None:
    """Test that out-of-range pages clamp instead of failing."""
    items = list(range(1, 26))
    assert paginate(items, page=5, page_size=10).items == [21, 22, 23, 24, 25]
    assert paginate(items, page=5, page_size=10).page == 3
    assert paginate(items, page=0, page_size=10).items == list(range(1, 11))


def test_paginate_empty() -> None:
    """Test pagination of an empty collection."""
    page = paginate([], page=3, page_size=10)
    assert page.items == []
    assert page.page == 1
    assert page.total_pages == 0
    assert page.first_index == 0


def test_paginate_rejects_bad_page_size() -> None:
    """Test that a page size below one is an error."""
    with pytest.raises(ValueError):
        paginate([1, 2], page_size=0)
