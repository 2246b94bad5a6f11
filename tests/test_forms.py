"""Tests for input validation."""

import pytest

from idea_manager.errors import ValidationFailed
from idea_manager.forms import AssignmentForm, CommentForm, IdeaForm, LoginForm, RegisterForm, validate_form
from idea_manager.models import Category, Role


def test_login_requires_both_fields() -> None:
    """Test that blank credentials are rejected per field."""
    with pytest.raises(ValidationFailed) as exc_info:
        validate_form(LoginForm, username="  ", password="")
    assert set(exc_info.value.errors) == {"username", "password"}
    assert str(exc_info.value).startswith("Invalid login")


def test_register_rules() -> None:
    """Test password length, name length and email format."""
    with pytest.raises(ValidationFailed) as exc_info:
        validate_form(RegisterForm, username="sam", password="12345", display_name="S", email="not-an-email")
    assert set(exc_info.value.errors) == {"password", "display_name", "email"}

    form = validate_form(RegisterForm, username="sam", password="123456", display_name="Sam", email="sam@example.com")
    assert form.email == "sam@example.com"


def test_idea_form() -> None:
    """Test a valid idea with tag cleanup."""
    form = validate_form(
        IdeaForm,
        title="  Shared car pool  ",
        description="Employees could share rides to the office every day.",
        category="opportunity",
        tags=["travel", "  ", " green "],
    )
    assert form.title == "Shared car pool"
    assert form.category is Category.OPPORTUNITY
    assert form.tags == ["travel", "green"]


@pytest.mark.parametrize(
    ("field", "overrides"),
    [
        ("title", {"title": "Hi"}),
        ("title", {"title": "x" * 101}),
        ("description", {"description": "Too short"}),
        ("category", {"category": "complaint"}),
    ],
)
def test_idea_form_rejects(field: str, overrides: dict) -> None:
    """Test each idea field rule."""
    data = {
        "title": "Shared car pool",
        "description": "Employees could share rides to the office every day.",
        "category": "opportunity",
    }
    data.update(overrides)
    with pytest.raises(ValidationFailed) as exc_info:
        validate_form(IdeaForm, **data)
    assert field in exc_info.value.errors


def test_unknown_field_rejected() -> None:
    """Test that unexpected fields are not silently dropped."""
    with pytest.raises(ValidationFailed) as exc_info:
        validate_form(CommentForm, content="Nice", votes=3)
    assert "votes" in exc_info.value.errors


def test_comment_form() -> None:
    """Test that empty comments are rejected."""
    assert validate_form(CommentForm, content=" ok ", parent_id=4).content == "ok"
    with pytest.raises(ValidationFailed):
        validate_form(CommentForm, content="   ")


def test_assignment_form() -> None:
    """Test assignment targets and roles."""
    form = validate_form(AssignmentForm, role="implementer", email="lee@example.com")
    assert form.role is Role.IMPLEMENTER
    assert validate_form(AssignmentForm, role="reviewer", user_id=3).user_id == 3

    with pytest.raises(ValidationFailed) as exc_info:
        validate_form(AssignmentForm, role="admin", user_id=3)
    assert "role" in exc_info.value.errors

    with pytest.raises(ValidationFailed, match="Invalid assignment"):
        validate_form(AssignmentForm, role="reviewer")
    with pytest.raises(ValidationFailed):
        validate_form(AssignmentForm, role="reviewer", user_id=3, email="lee@example.com")
