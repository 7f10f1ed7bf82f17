"""Identity decoding for finalized event payloads."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class IdentifyPayload(BaseModel):
    """The part of an identify payload that declares who the user is."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["identify"]
    user_id: str = Field(..., alias="userId", description="User id declared by the event")


def decode_user_id(payload: Any) -> Optional[str]:
    """Extract the user id from an identify payload.

    Returns None for any other event type, for malformed payloads and for an
    empty user id. Never raises.
    """
    try:
        decoded = IdentifyPayload.model_validate(payload)
    except ValidationError:
        return None

    return decoded.user_id or None
