"""Wire messages exchanged with feed clients.

Inbound frames are JSON objects ``{"type": "subscribe"|"unsubscribe",
"target": "temperature"}``. Outbound frames are one of::

    {"type": "temperature", "dateTime": "<ISO-8601>", "value": 23.41}
    {"ack": true}
    {"error": "<text>"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Union

TEMPERATURE_TARGET = "temperature"


class ValidationKind(Enum):
    EMPTY_MESSAGE = "empty_message"
    MALFORMED_MESSAGE = "malformed_message"
    UNKNOWN_TYPE = "unknown_type"
    UNKNOWN_TARGET = "unknown_target"

    @property
    def text(self) -> str:
        return _VALIDATION_TEXT[self]


_VALIDATION_TEXT = {
    ValidationKind.EMPTY_MESSAGE: "Invalid inbound message",
    ValidationKind.MALFORMED_MESSAGE: "Invalid inbound message",
    ValidationKind.UNKNOWN_TYPE: "Invalid message type",
    ValidationKind.UNKNOWN_TARGET: "Invalid subscription target",
}


class ValidationError(ValueError):
    """An inbound frame that cannot be acted upon."""

    def __init__(self, kind: ValidationKind, detail: str = "") -> None:
        super().__init__(kind.text)
        self.kind = kind
        self.detail = detail

    @property
    def message(self) -> str:
        return self.kind.text


@dataclass(frozen=True)
class SubscribeRequest:
    target: str = TEMPERATURE_TARGET


@dataclass(frozen=True)
class UnsubscribeRequest:
    target: str = TEMPERATURE_TARGET


@dataclass(frozen=True)
class TemperatureMessage:
    timestamp: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "temperature",
            "dateTime": self.timestamp.isoformat(timespec="milliseconds"),
            "value": self.value,
        }


@dataclass(frozen=True)
class AckMessage:
    def to_dict(self) -> Dict[str, Any]:
        return {"ack": True}


@dataclass(frozen=True)
class ErrorMessage:
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.text}


Request = Union[SubscribeRequest, UnsubscribeRequest]
OutboundMessage = Union[TemperatureMessage, AckMessage, ErrorMessage]

_REQUEST_TYPES = {
    "subscribe": SubscribeRequest,
    "unsubscribe": UnsubscribeRequest,
}


def parse_request(raw: Union[str, bytes, None]) -> Request:
    """Decode one inbound frame or raise :class:`ValidationError`."""
    if not raw:
        raise ValidationError(ValidationKind.EMPTY_MESSAGE)

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError(ValidationKind.MALFORMED_MESSAGE, str(exc)) from exc

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise ValidationError(ValidationKind.MALFORMED_MESSAGE, str(exc)) from exc

    if not isinstance(payload, dict):
        raise ValidationError(
            ValidationKind.MALFORMED_MESSAGE, f"expected an object, got {type(payload).__name__}"
        )

    msg_type = payload.get("type")
    request_cls = _REQUEST_TYPES.get(msg_type) if isinstance(msg_type, str) else None
    if request_cls is None:
        raise ValidationError(ValidationKind.UNKNOWN_TYPE, repr(msg_type))

    target = payload.get("target")
    if target != TEMPERATURE_TARGET:
        raise ValidationError(ValidationKind.UNKNOWN_TARGET, repr(target))

    return request_cls(target=target)


def encode(message: OutboundMessage) -> str:
    return json.dumps(message.to_dict())
