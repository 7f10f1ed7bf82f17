"""Send outcome models shared by the engine and the transport."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ResponseStatus(str, Enum):
    """Last known outcome of a flush."""

    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"  # Transient and permanent failures are not distinguished


class SendOutcome(BaseModel):
    """Outcome of a single batch send."""

    status: ResponseStatus
    payload: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, payload: Any = None) -> SendOutcome:
        return cls(status=ResponseStatus.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, reason: str) -> SendOutcome:
        return cls(status=ResponseStatus.FAILURE, error=reason)

    @classmethod
    def pending(cls) -> SendOutcome:
        return cls(status=ResponseStatus.PENDING)

    @property
    def is_success(self) -> bool:
        return self.status == ResponseStatus.SUCCESS
