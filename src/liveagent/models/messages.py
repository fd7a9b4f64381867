"""
Payload models for each inbound event tag (``Envelope.message``).
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from liveagent.models.events import EventTag


class _Payload(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}


class GeoLocation(_Payload):
    country_code: str = Field("", alias="countryCode")
    country_name: str = Field("", alias="countryName")
    region: Optional[str] = None
    city: Optional[str] = None
    organization: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class CustomDetail(_Payload):
    label: str = ""
    value: str = ""
    transcript_fields: list[str] = Field(default_factory=list, alias="transcriptFields")
    display_to_agent: Optional[bool] = Field(None, alias="displayToAgent")


class TranscriptEntry(_Payload):
    """One line of the chat transcript restored after a resync."""
    type: str = ""  # "Agent" | "Chasitor" | "OperatorTransferred"
    name: str = ""
    content: str = ""
    timestamp: Optional[int] = None
    sequence: Optional[int] = None


class AvailabilityResult(_Payload):
    id: str
    is_available: bool = Field(False, alias="isAvailable")


class AvailabilityData(_Payload):
    results: list[AvailabilityResult] = Field(default_factory=list)


class Empty(_Payload):
    pass


class ChasitorSessionData(_Payload):
    queue_position: Optional[int] = Field(None, alias="queuePosition")
    geo_location: Optional[GeoLocation] = Field(None, alias="geoLocation")
    url: Optional[str] = None
    oref: Optional[str] = None
    post_chat_url: Optional[str] = Field(None, alias="postChatUrl")
    sneak_peek_enabled: Optional[bool] = Field(None, alias="sneakPeakEnabled")
    chat_messages: list[TranscriptEntry] = Field(default_factory=list, alias="chatMessages")


class ChatEndedData(_Payload):
    attached_records: list[str] = Field(default_factory=list, alias="attachedRecords")


class ChatEstablishedData(_Payload):
    name: str = ""
    user_id: str = Field("", alias="userId")
    sneak_peek_enabled: Optional[bool] = Field(None, alias="sneakPeakEnabled")
    chasitor_idle_timeout: Optional[Any] = Field(None, alias="chasitorIdleTimeout")


class ChatMessageData(_Payload):
    name: str = ""
    text: str = ""
    agent_id: str = Field("", alias="agentId")


class ChatRequestFailData(_Payload):
    reason: str = ""
    post_chat_url: Optional[str] = Field(None, alias="postChatUrl")


class ChatRequestSuccessData(_Payload):
    queue_position: Optional[int] = Field(None, alias="queuePosition")
    geo_location: Optional[GeoLocation] = Field(None, alias="geoLocation")
    url: Optional[str] = None
    oref: Optional[str] = None
    post_chat_url: Optional[str] = Field(None, alias="postChatUrl")
    custom_details: list[CustomDetail] = Field(default_factory=list, alias="customDetails")
    visitor_id: str = Field("", alias="visitorId")


class ChatTransferredData(_Payload):
    name: str = ""
    user_id: str = Field("", alias="userId")
    sneak_peek_enabled: Optional[bool] = Field(None, alias="sneakPeekEnabled")
    chasitor_idle_timeout: Optional[Any] = Field(None, alias="chasitorIdleTimeout")


class CustomEventData(_Payload):
    type: str = ""
    data: str = ""


class NewVisitorBreadcrumbData(_Payload):
    location: str = ""


class QueueUpdateData(_Payload):
    position: int = 0


PAYLOAD_MODELS: dict[EventTag, type[BaseModel]] = {
    EventTag.AVAILABILITY: AvailabilityData,
    EventTag.AGENT_DISCONNECT: Empty,
    EventTag.AGENT_TYPING: Empty,
    EventTag.AGENT_NOT_TYPING: Empty,
    EventTag.CHASITOR_SESSION_DATA: ChasitorSessionData,
    EventTag.CHAT_ENDED: ChatEndedData,
    EventTag.CHAT_END: Empty,
    EventTag.CHAT_ESTABLISHED: ChatEstablishedData,
    EventTag.CHAT_MESSAGE: ChatMessageData,
    EventTag.CHASITOR_CHAT_MESSAGE: ChatMessageData,
    EventTag.CHAT_REQUEST_FAIL: ChatRequestFailData,
    EventTag.CHAT_REQUEST_SUCCESS: ChatRequestSuccessData,
    EventTag.CHAT_TRANSFERRED: ChatTransferredData,
    EventTag.CUSTOM_EVENT: CustomEventData,
    EventTag.NEW_VISITOR_BREADCRUMB: NewVisitorBreadcrumbData,
    EventTag.QUEUE_UPDATE: QueueUpdateData,
}
