"""Input schemas checked before anything is sent to the backend."""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator, model_validator

from idea_manager.errors import ValidationFailed
from idea_manager.models import ASSIGNABLE_ROLES, Category, Role

FormT = TypeVar("FormT", bound=BaseModel)


class _Form(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")


class LoginForm(_Form):
    username: str = Field(..., min_length=1, description="Username is required")
    password: str = Field(..., min_length=1, description="Password is required")


class RegisterForm(_Form):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, description="Password must be at least 6 characters")
    display_name: str = Field(..., min_length=2, description="Name must be at least 2 characters")
    department: str | None = None
    email: EmailStr | None = None


class IdeaForm(_Form):
    """A new idea, pain point or challenge."""

    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20)
    category: Category
    impact: str | None = None
    department: str | None = None
    priority: str | None = None
    tags: list[str] = Field(default_factory=list)
    inspiration: str | None = None
    similar_solutions: str | None = None
    admin_notes: str | None = None

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, tags: list[str]) -> list[str]:
        return [tag.strip() for tag in tags if tag.strip()]


class CommentForm(_Form):
    content: str = Field(..., min_length=1, description="Comment cannot be empty")
    parent_id: int | None = None


class AssignmentForm(_Form):
    role: Role
    user_id: int | None = None
    email: EmailStr | None = None

    @field_validator("role")
    @classmethod
    def _assignable(cls, role: Role) -> Role:
        if role not in ASSIGNABLE_ROLES:
            allowed = ", ".join(r.value for r in ASSIGNABLE_ROLES)
            raise ValueError(f"must be one of: {allowed}")
        return role

    @model_validator(mode="after")
    def _one_target(self) -> "AssignmentForm":
        if (self.user_id is None) == (self.email is None):
            raise ValueError("provide exactly one of user_id or email")
        return self


def validate_form(schema: type[FormT], **data: Any) -> FormT:
    """Build ``schema`` from ``data`` or raise ValidationFailed with per-field messages."""
    try:
        return schema(**data)
    except ValidationError as e:
        errors: dict[str, list[str]] = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "__all__"
            errors.setdefault(field, []).append(error["msg"])
        raise ValidationFailed(f"Invalid {schema.__name__.removesuffix('Form').lower()}", errors) from e
