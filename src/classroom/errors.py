"""Error hierarchy for remote dispatch failure classification.

This hierarchy lets the tenacity retry decorator in the dispatcher tell
transient transport failures (retry) apart from permanent ones (fail fast).
Nothing in this package lets these escape to a caller: the dispatcher
normalizes every one of them into a ``{"success": False, "error": ...}`` dict.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def _post(form: dict[str, str]) -> dict:
        ...
"""


class DispatchError(Exception):
    """Base exception for all remote dispatch errors."""

    pass


class TransientError(DispatchError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, connection resets, 502/503 from the script host.
    """

    pass


class RateLimitError(TransientError):
    """Remote service throttled the request (HTTP 429).

    Inherits from TransientError so tenacity will retry it after the
    configured wait.
    """

    pass


class PermanentError(DispatchError):
    """Failure that won't succeed on retry.

    Examples: 4xx responses, a deployment URL that no longer exists.
    """

    pass


class AuthenticationError(PermanentError):
    """No credentials in the session, or the remote rejected them.

    Requires a fresh login, cannot be fixed by retry.
    """

    pass


class ResponseFormatError(PermanentError):
    """Response body is not JSON, or not the shape an action expects."""

    pass
