"""
Response shapes of the request/response calls.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from liveagent.models.events import Envelope


class _Response(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}


class SessionIdResponse(_Response):
    id: str
    key: str
    affinity_token: str = Field(alias="affinityToken")
    # Seconds within which the next Messages request must be made
    client_poll_timeout: int = Field(40, alias="clientPollTimeout")


class ResyncSessionResponse(_Response):
    is_valid: bool = Field(alias="isValid")
    key: str = ""
    affinity_token: str = Field("", alias="affinityToken")


class Button(_Response):
    id: str
    type: Optional[str] = None
    endpoint_url: Optional[str] = Field(None, alias="endpointUrl")
    prechat_url: Optional[str] = Field(None, alias="prechatUrl")
    language: Optional[str] = None
    is_available: bool = Field(False, alias="isAvailable")


class SettingsResponse(_Response):
    pingrate: Optional[int] = None
    content_server_url: Optional[str] = Field(None, alias="contentServerUrl")
    buttons: list[Button] = Field(default_factory=list, alias="button")


class VisitorIdResponse(_Response):
    session_id: str = Field("", alias="sessionId")


class PollResponse(BaseModel):
    """One Messages long-poll result. ``sequence`` absent means no ack update."""

    events: list[Envelope] = Field(default_factory=list)
    sequence: Optional[int] = None
    skipped: list[Any] = Field(default_factory=list)
