"""
Request bodies for the outbound Live Agent calls. Serialized with camelCase aliases.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from liveagent.models.messages import CustomDetail


class _Body(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EntityFieldMap(_Body):
    field_name: str = Field(alias="fieldName")
    label: str
    do_find: bool = Field(False, alias="doFind")
    is_exact_match: bool = Field(False, alias="isExactMatch")
    do_create: bool = Field(False, alias="doCreate")


class Entity(_Body):
    entity_name: str = Field(alias="entityName")
    show_on_create: Optional[bool] = Field(None, alias="showOnCreate")
    entity_fields_maps: list[EntityFieldMap] = Field(default_factory=list, alias="entityFieldsMaps")
    link_to_entity_name: Optional[str] = Field(None, alias="linkToEntityName")
    link_to_entity_field: Optional[str] = Field(None, alias="linkToEntityField")
    save_to_transcript: Optional[str] = Field(None, alias="saveToTranscript")


class ChasitorInit(_Body):
    """Visitor details for the ChasitorInit request.

    ``organizationId``, ``deploymentId``, ``buttonId`` and ``sessionId`` are
    filled in from the config and session state when the request is sent.
    """

    visitor_name: str = Field(alias="visitorName")
    language: str = "en-US"
    screen_resolution: str = Field("", alias="screenResolution")
    user_agent: str = Field("", alias="userAgent")
    prechat_details: list[CustomDetail] = Field(default_factory=list, alias="prechatDetails")
    prechat_entities: list[Entity] = Field(default_factory=list, alias="prechatEntities")
    button_overrides: Optional[list[str]] = Field(None, alias="buttonOverrides")
    receive_queue_updates: bool = Field(True, alias="receiveQueueUpdates")
    is_post: bool = Field(True, alias="isPost")


class NounWrapper(_Body):
    prefix: str
    noun: str
    data: Optional[str] = None
