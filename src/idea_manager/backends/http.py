"""REST API backend implementation using httpx."""

import json
import mimetypes
from pathlib import Path
from typing import Any

import httpx
import structlog

from idea_manager.backend import Backend
from idea_manager.errors import (
    ApiError,
    ApiUnavailable,
    CapabilityDenied,
    InvalidPayload,
    NotAuthenticated,
    NotFound,
)
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

logger = structlog.get_logger()

# Body fields of IdeaForm and their wire names.
_IDEA_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "impact": "impact",
    "department": "department",
    "priority": "priority",
    "tags": "tags",
    "inspiration": "inspiration",
    "similar_solutions": "similarSolutions",
    "admin_notes": "adminNotes",
}


class HttpBackend(Backend):
    """Backend talking to the idea management REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP backend.

        Args:
            base_url: API root, e.g. https://ideas.example.com
            timeout: Request timeout in seconds
            cookies: Session cookies from a previous login
            transport: Optional httpx transport (used by tests)
        """
        if not base_url:
            raise ValueError("API base_url required")
        self.base_url = base_url.rstrip("/")
        logger.debug("Initializing HTTP backend", base_url=self.base_url)
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            cookies=cookies,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def cookies(self) -> dict[str, str]:
        """Current session cookies, for persisting between runs."""
        return dict(self.client.cookies.items())

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ApiUnavailable: the request did not complete
            NotAuthenticated: HTTP 401
            CapabilityDenied: HTTP 403
            NotFound: HTTP 404
            ApiError: any other non-2xx status
            InvalidPayload: a 2xx body that is not JSON
        """
        logger.debug("API request", method=method, path=path)
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("API request failed", method=method, path=path, error=str(e))
            raise ApiUnavailable(f"Could not reach {self.base_url}: {e}") from e

        logger.debug("API response", method=method, path=path, status=response.status_code)
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.error("API returned malformed JSON", method=method, path=path)
                raise InvalidPayload(f"Invalid response from server for {method} {path}") from e

        message, errors = self._error_details(response)
        logger.warning("API error", method=method, path=path, status=response.status_code, message=message)
        if response.status_code == 401:
            raise NotAuthenticated(message)
        if response.status_code == 403:
            raise CapabilityDenied(message)
        if response.status_code == 404:
            raise NotFound(404, message, errors)
        raise ApiError(response.status_code, message, errors)

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str, Any]:
        fallback = response.reason_phrase or "Request failed"
        try:
            body = response.json()
        except ValueError:
            return response.text.strip() or fallback, None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or fallback
            return message, body.get("errors")
        return fallback, None

    async def _ideas(self, path: str, **kwargs: Any) -> list[Idea]:
        data = await self._request("GET", path, **kwargs)
        return [Idea.from_api(item) for item in data or []]

    # Session

    async def login(self, username: str, password: str) -> User:
        logger.info("Logging in", username=username)
        data = await self._request("POST", "/api/login", json={"username": username, "password": password})
        if not isinstance(data, dict):
            raise InvalidPayload("Invalid response from server")
        return User.from_api(data)

    async def logout(self) -> None:
        logger.info("Logging out")
        await self._request("POST", "/api/logout")
        self.client.cookies.clear()

    async def register(self, form: RegisterForm) -> User:
        logger.info("Registering user", username=form.username)
        body = {
            "username": form.username,
            "password": form.password,
            "displayName": form.display_name,
            "department": form.department,
            "email": form.email,
        }
        data = await self._request("POST", "/api/register", json={k: v for k, v in body.items() if v is not None})
        return User.from_api(data)

    async def current_user(self) -> User | None:
        try:
            data = await self._request("GET", "/api/user")
        except NotAuthenticated:
            return None
        return User.from_api(data) if data else None

    async def auth_check(self) -> bool:
        try:
            response = await self.client.get("/api/admin/auth-check")
        except httpx.HTTPError as e:
            raise ApiUnavailable(f"Could not reach {self.base_url}: {e}") from e
        logger.debug("Auth check", status=response.status_code)
        return response.status_code == 200

    # Ideas

    async def list_ideas(self) -> list[Idea]:
        return await self._ideas("/api/ideas")

    async def list_review_ideas(self) -> list[Idea]:
        return await self._ideas("/api/ideas/review")

    async def list_admin_ideas(self) -> list[Idea]:
        return await self._ideas("/api/admin/ideas")

    async def get_idea(self, idea_id: int) -> Idea:
        logger.info("Reading idea", idea_id=idea_id)
        return Idea.from_api(await self._request("GET", f"/api/ideas/{idea_id}"))

    async def create_idea(
        self,
        form: IdeaForm,
        attachment: Path | None = None,
        files: list[Path] | None = None,
    ) -> Idea:
        logger.info("Creating idea", title=form.title, category=str(form.category))
        body = {
            wire: getattr(form, name)
            for name, wire in _IDEA_FIELDS.items()
            if getattr(form, name) not in (None, "")
        }
        body["category"] = form.category.value

        if not attachment and not files:
            return Idea.from_api(await self._request("POST", "/api/ideas", json=body))

        # Multipart: scalar fields as form data, tags JSON-encoded.
        data = {key: json.dumps(value) if isinstance(value, list) else value for key, value in body.items()}
        uploads = []
        if attachment:
            uploads.append(("attachment", self._file_part(attachment)))
        for path in files or []:
            uploads.append(("files", self._file_part(path)))
        logger.debug("Uploading idea files", count=len(uploads))
        return Idea.from_api(await self._request("POST", "/api/ideas", data=data, files=uploads))

    @staticmethod
    def _file_part(path: Path) -> tuple[str, bytes, str]:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return path.name, path.read_bytes(), content_type

    async def update_idea(
        self,
        idea_id: int,
        status: Status | None = None,
        admin_notes: str | None = None,
    ) -> Idea:
        logger.info("Updating idea", idea_id=idea_id, status=str(status) if status else None)
        body: dict[str, Any] = {}
        if status is not None:
            body["status"] = Status(status).value
        if admin_notes is not None:
            body["adminNotes"] = admin_notes
        return Idea.from_api(await self._request("PATCH", f"/api/ideas/{idea_id}", json=body))

    async def vote(self, idea_id: int) -> VoteResult:
        logger.info("Voting for idea", idea_id=idea_id)
        data = await self._request("POST", f"/api/ideas/{idea_id}/vote")
        if isinstance(data, dict) and data.get("alreadyVoted"):
            return VoteResult(idea=Idea.from_api(data["idea"]), already_voted=True)
        return VoteResult(idea=Idea.from_api(data))

    async def assign(self, assignment: Assignment) -> Idea:
        logger.info("Assigning idea", idea_id=assignment.idea_id, role=str(assignment.role))
        data = await self._request(
            "POST",
            f"/api/ideas/{assignment.idea_id}/assign",
            json={"role": assignment.role.value, "userId": assignment.wire_user_id()},
        )
        if isinstance(data, dict) and "idea" in data:
            data = data["idea"]
        return Idea.from_api(data)

    async def search(self, query: str) -> list[Idea]:
        return await self._ideas("/api/search", params={"q": query})

    async def my_votes(self) -> list[Idea]:
        return await self._ideas("/api/ideas/my-votes")

    # Follows

    async def follow(self, idea_id: int) -> None:
        await self._request("POST", f"/api/ideas/{idea_id}/follow")

    async def unfollow(self, idea_id: int) -> None:
        await self._request("DELETE", f"/api/ideas/{idea_id}/follow")

    async def is_following(self, idea_id: int) -> bool:
        data = await self._request("GET", f"/api/ideas/{idea_id}/follow")
        return bool(data and data.get("following"))

    async def followed_ideas(self) -> list[Idea]:
        return await self._ideas("/api/ideas/my-follows")

    # Comments

    async def list_comments(self, idea_id: int | None = None) -> list[Comment]:
        path = "/api/comments" if idea_id is None else f"/api/ideas/{idea_id}/comments"
        data = await self._request("GET", path)
        return [Comment.from_api(item) for item in data or []]

    async def add_comment(self, idea_id: int, content: str, parent_id: int | None = None) -> Comment:
        logger.info("Adding comment", idea_id=idea_id, parent_id=parent_id)
        body: dict[str, Any] = {"content": content}
        if parent_id is not None:
            body["parentId"] = parent_id
        return Comment.from_api(await self._request("POST", f"/api/ideas/{idea_id}/comments", json=body))

    async def update_comment(self, comment_id: int, content: str) -> Comment:
        logger.info("Updating comment", comment_id=comment_id)
        return Comment.from_api(await self._request("PATCH", f"/api/comments/{comment_id}", json={"content": content}))

    async def delete_comment(self, comment_id: int) -> None:
        logger.info("Deleting comment", comment_id=comment_id)
        await self._request("DELETE", f"/api/comments/{comment_id}")

    # Users

    async def list_users(self) -> list[User]:
        data = await self._request("GET", "/api/admin/users")
        return [User.from_api(item) for item in data or []]

    async def delete_user(self, user_id: int) -> None:
        logger.info("Deleting user", user_id=user_id)
        await self._request("DELETE", f"/api/admin/users/{user_id}")

    async def user_submissions(self, user_id: int) -> list[Idea]:
        return await self._ideas(f"/api/admin/users/{user_id}/submissions")

    # Dashboard

    async def metrics(self) -> Metrics:
        return Metrics.from_api(await self._request("GET", "/api/metrics") or {})

    async def leaderboard(
        self,
        category: str | None = None,
        department: str | None = None,
        time_range: str | None = None,
    ) -> list[LeaderboardEntry]:
        params = {"category": category, "department": department, "timeRange": time_range}
        data = await self._request("GET", "/api/leaderboard", params={k: v for k, v in params.items() if v})
        return [LeaderboardEntry.from_api(item) for item in data or []]

    async def notifications(self, limit: int = 10, only_unread: bool = False) -> list[Notification]:
        params = {"limit": limit, "onlyUnread": "true" if only_unread else "false"}
        data = await self._request("GET", "/api/notifications", params=params)
        return [Notification.from_api(item) for item in data or []]

    async def unread_notification_count(self) -> int:
        data = await self._request("GET", "/api/notifications/unread-count")
        return int((data or {}).get("count", 0))

    async def mark_notification_read(self, notification_id: int) -> None:
        await self._request("POST", f"/api/notifications/{notification_id}/mark-as-read")

    async def mark_all_notifications_read(self) -> None:
        await self._request("POST", "/api/notifications/mark-all-as-read")

    async def close(self) -> None:
        await self.client.aclose()
