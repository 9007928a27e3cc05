"""Request dispatcher for the remote Apps Script backend.

Every remote operation is one form-encoded POST to a single URL, with the
operation named by the ``action`` field. The dispatcher adds session
credentials, classifies transport failures for tenacity, and normalizes
every failure into the ``{"success": False, "error": ...}`` shape so nothing
upstream has to tell an exception apart from a logical failure.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.classroom.config import ClassroomConfig
from src.classroom.errors import (
    AuthenticationError,
    DispatchError,
    PermanentError,
    RateLimitError,
    ResponseFormatError,
    TransientError,
)
from src.classroom.logging import get_logger
from src.classroom.session import Session, SessionManager

logger = get_logger(__name__)

ParamValue = str | int | float | bool
Params = Mapping[str, ParamValue | None]

LOGIN_ACTION = "login"
INVALID_CREDENTIALS = "Invalid credentials"
NO_CREDENTIALS = "No stored credentials. Please log in first."


class Dispatcher(Protocol):
    """Anything that turns an action + params into a result dict."""

    async def dispatch(
        self, action: str, params: Params | None = None
    ) -> dict[str, Any]: ...


class RequestDispatcher:
    """Dispatches named actions to the remote script over HTTP.

    Network I/O runs in a worker thread so the event loop keeps serving other
    views while a slow request is in flight.
    """

    def __init__(
        self,
        session: Session,
        api_url: str,
        *,
        timeout: float = 30.0,
        max_attempts: int = 2,
        retry_wait: float = 2.0,
        session_manager: SessionManager | None = None,
    ) -> None:
        """Initialize RequestDispatcher.

        Args:
            session: Credentials attached to every non-login action.
            api_url: Deployed script URL.
            timeout: Seconds for one HTTP round-trip.
            max_attempts: Attempts per request on TransientError.
            retry_wait: Seconds between attempts.
            session_manager: If given, login saves and invalid credentials
                clear the cached session blob.
        """
        self.session = session
        self.api_url = api_url
        self.timeout = timeout
        self.session_manager = session_manager
        self._post = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(retry_wait),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        )(self._post_once)

    @classmethod
    def from_config(
        cls,
        config: ClassroomConfig,
        session: Session | None = None,
        session_manager: SessionManager | None = None,
    ) -> "RequestDispatcher":
        return cls(
            session if session is not None else Session(),
            config.api_url,
            timeout=config.request_timeout_seconds,
            max_attempts=config.max_transport_attempts,
            retry_wait=config.transport_retry_wait_seconds,
            session_manager=session_manager,
        )

    async def dispatch(
        self, action: str, params: Params | None = None
    ) -> dict[str, Any]:
        """Send one action and return its normalized result dict.

        Args:
            action: Remote action name, e.g. "getAttendance".
            params: Extra form fields. None values are omitted.

        Returns:
            The decoded response, always carrying a boolean "success" and,
            on failure, an "error" string.

        Raises:
            ValueError: If action is empty.
        """
        if not action:
            raise ValueError("action must be a non-empty string")

        try:
            form = self._build_form(action, params or {})
        except AuthenticationError as e:
            logger.warning("api_request_skipped", action=action, reason=str(e))
            return {"success": False, "error": str(e)}

        logger.debug("api_request", action=action, form=form)

        try:
            data = await asyncio.to_thread(self._post, form)
        except DispatchError as e:
            logger.warning(
                "api_request_failed",
                action=action,
                error=str(e),
                type=type(e).__name__,
            )
            return {"success": False, "error": str(e)}

        data["success"] = bool(data.get("success"))
        if not data["success"]:
            data["error"] = str(data.get("error") or f"{action} failed")
            if data["error"] == INVALID_CREDENTIALS:
                logger.warning("invalid_credentials", action=action)
                self._forget_credentials()

        logger.debug("api_response", action=action, success=data["success"])
        return data

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and, on success, store the credentials in the session."""
        response = await self.dispatch(
            LOGIN_ACTION, {"username": username, "password": password}
        )
        if response["success"]:
            self.session.set_credentials(username, password, response.get("user"))
            if self.session_manager is not None:
                self.session_manager.save(self.session)
        return response

    def logout(self) -> None:
        self._forget_credentials()

    def _build_form(self, action: str, params: Params) -> dict[str, str]:
        form = {"action": action}

        if action != LOGIN_ACTION:
            if not self.session.has_credentials() and self.session_manager is not None:
                cached = self.session_manager.load()
                if cached is not None:
                    self.session.set_credentials(
                        cached.username, cached.password, cached.user
                    )
            if not self.session.has_credentials():
                raise AuthenticationError(NO_CREDENTIALS)
            form["username"] = self.session.username
            form["password"] = self.session.password

        for key, value in params.items():
            if value is None:
                continue
            form[key] = _encode(value)
        return form

    def _post_once(self, form: dict[str, str]) -> dict[str, Any]:
        try:
            resp = requests.post(self.api_url, data=form, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientError(f"Request timed out: {e}") from e
        except requests.ConnectionError as e:
            raise TransientError(f"Connection failed: {e}") from e
        except requests.RequestException as e:
            raise PermanentError(f"Request failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError("Rate limited by remote service (HTTP 429)")
        if resp.status_code >= 500:
            raise TransientError(f"HTTP error! status: {resp.status_code}")
        if not resp.ok:
            raise PermanentError(f"HTTP error! status: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ResponseFormatError("Response is not valid JSON") from e
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        return data

    def _forget_credentials(self) -> None:
        self.session.clear()
        if self.session_manager is not None:
            self.session_manager.clear()


def _encode(value: ParamValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
