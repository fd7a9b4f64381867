"""
Live Agent error types: one class per failure kind the session can surface.
"""

from typing import Any, Optional


class LiveAgentError(Exception):
    """Base error. ``terminal`` errors close the session's event bus."""

    status: Optional[int] = None
    terminal = True

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class SessionNotEstablished(LiveAgentError):
    def __init__(self, message: str = (
        "Session is invalid. You must start a session before calling this method. "
        "This usually happens if you have tried to use an API method before calling allocate_session()."
    )):
        super().__init__("session_not_established", message)


class ResyncRequired(SessionNotEstablished):
    """Raised for sequenced calls while an affinity resync is pending."""

    terminal = False

    def __init__(self, message: str = "The affinity token has changed. Resync the session before sending."):
        super().__init__(message)
        self.code = "resync_required"


class ChatCancelled(LiveAgentError):
    def __init__(self, message: str = "The chat has ended; the request was cancelled."):
        super().__init__("cancelled", message)


class TransportFailure(LiveAgentError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_failure", message, details)


class ProtocolError(LiveAgentError):
    """A 2xx response whose body does not have the expected shape."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("protocol_error", message, details)


class HttpStatusError(LiveAgentError):
    """An application-level error code returned by the Live Agent server."""

    code_name = "http_error"
    default_message = "Unknown error."

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, body: Any = None):
        super().__init__(self.code_name, message or self.default_message, {"body": body} if body else None)
        if status is not None:
            self.status = status


class MalformedRequest(HttpStatusError):
    status = 400
    code_name = "malformed_request"
    default_message = "The request couldn't be understood, usually because the JSON body contains an error."


class InvalidSession(HttpStatusError):
    status = 403
    code_name = "invalid_session"
    default_message = "The request has been refused because the session isn't valid."


class NotFound(HttpStatusError):
    status = 404
    code_name = "not_found"
    default_message = "The requested resource couldn't be found. Check the URI for errors."


class MethodNotAllowed(HttpStatusError):
    status = 405
    code_name = "method_not_allowed"
    default_message = "The method specified in the Request-Line isn't allowed for the resource specified in the URI."


class SequenceConflict(HttpStatusError):
    status = 409
    code_name = "sequence_conflict"
    default_message = "There is a conflict, probably a message acked out of order."


class ServerFault(HttpStatusError):
    status = 500
    code_name = "server_fault"
    default_message = (
        "An error has occurred within the Live Agent server, so the request couldn't be completed."
    )


class AffinityRotated(HttpStatusError):
    status = 503
    code_name = "affinity_rotated"
    terminal = False
    default_message = (
        "The affinity token has changed. You must make a ResyncSession request to get a new affinity "
        "token and session key, then make a ChasitorResyncState request to reestablish the chat "
        "visitor's data within the new session."
    )


_STATUS_ERRORS: dict[int, type[HttpStatusError]] = {
    cls.status: cls  # type: ignore[misc]
    for cls in (
        MalformedRequest, InvalidSession, NotFound, MethodNotAllowed,
        SequenceConflict, ServerFault, AffinityRotated,
    )
}


def error_for_status(status: int, body: Any = None) -> HttpStatusError:
    """Map an HTTP status code to its error kind."""
    cls = _STATUS_ERRORS.get(status)
    if cls is None:
        return HttpStatusError(f"Unknown error (HTTP {status}).", status=status, body=body)
    if cls is SequenceConflict and body:
        return cls(f"{cls.default_message} {body}", status=status, body=body)
    return cls(status=status, body=body)
