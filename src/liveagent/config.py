"""
Deployment configuration for a Live Agent chat session.
"""

import os
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator

DEFAULT_VERSION = "42"

ENV_VARS = {
    "LIVEAGENT_HOST": "host",
    "LIVEAGENT_VERSION": "version",
    "LIVEAGENT_ORGANIZATION_ID": "organization_id",
    "LIVEAGENT_DEPLOYMENT_ID": "deployment_id",
    "LIVEAGENT_BUTTON_ID": "button_id",
}


class ProtocolVersion(str, Enum):
    """Supported values of the X-LIVEAGENT-API-VERSION header."""

    V30 = "30"
    V31 = "31"
    V32 = "32"
    V33 = "33"
    V34 = "34"
    V35 = "35"
    V36 = "36"
    V37 = "37"
    V38 = "38"
    V39 = "39"
    V40 = "40"
    V41 = "41"
    V42 = "42"


class Config(BaseModel):
    host: str
    version: ProtocolVersion = ProtocolVersion(DEFAULT_VERSION)
    # The ID of the Salesforce organization associated with the Live Agent deployment
    organization_id: str
    # The ID of the Live Agent deployment the chat request is initiated from
    deployment_id: str
    button_id: str

    auto_resync: bool = False
    send_sequence_header: bool = False
    request_timeout: float = 30.0
    # Added to clientPollTimeout for the read timeout of a Messages request
    poll_grace: float = 5.0

    model_config = {"frozen": True}

    @field_validator("host", "organization_id", "deployment_id", "button_id")
    @classmethod
    def not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @classmethod
    def from_env(
        cls,
        env: Optional[dict[str, str]] = None,
        defaults: Optional[dict[str, Any]] = None,
        **overrides: Any,
    ) -> "Config":
        """Build from LIVEAGENT_* variables over ``defaults``; ``overrides`` win."""
        env = dict(os.environ) if env is None else env
        values: dict[str, Any] = dict(defaults or {})
        for var, field in ENV_VARS.items():
            if env.get(var):
                values[field] = env[var]
        values.update(overrides)
        return cls(**values)
