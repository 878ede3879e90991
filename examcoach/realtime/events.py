"""Typed events exchanged with the realtime conversational collaborator.

Inbound events arrive over the ordered data channel as JSON objects with a
``type`` field; only the types the turn controller reacts to are decoded,
everything else maps to ``None``. Outbound events are the two turn signals
the client sends back.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from examcoach.config import config

logger = config.get_logger(__name__)


class TurnState(str, Enum):
    """Turn-taking state of one live interview session."""

    IDLE = "idle"
    LISTENING_TO_USER = "listening_to_user"
    AWAITING_AGENT_RESPONSE = "awaiting_agent_response"
    AGENT_SPEAKING = "agent_speaking"
    CLOSED = "closed"


class ServerEventType(str, Enum):
    """Wire names of the server events the client understands."""

    AGENT_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    AGENT_TRANSCRIPT_DONE = "response.audio_transcript.done"
    USER_TRANSCRIPT_DONE = "conversation.item.input_audio_transcription.completed"
    ERROR = "error"


class ClientEventType(str, Enum):
    """Wire names of the client events the controller emits."""

    CANCEL_TURN = "response.cancel"
    REQUEST_TURN = "response.create"


@dataclass(frozen=True)
class AgentTranscriptDelta:
    """Fragment of the examiner's speech transcript."""

    delta: str
    response_id: str | None = None


@dataclass(frozen=True)
class AgentTranscriptDone:
    """Complete transcript of one examiner turn."""

    transcript: str
    response_id: str | None = None


@dataclass(frozen=True)
class UserTranscriptDone:
    """Completed transcription of the candidate's speech."""

    transcript: str
    item_id: str | None = None


@dataclass(frozen=True)
class ServerError:
    """Error reported by the collaborator about a single request."""

    message: str
    code: str | None = None


@dataclass(frozen=True)
class ChannelError:
    """The event channel or media connection failed."""

    message: str


@dataclass(frozen=True)
class CancelTurn:
    """Ask the collaborator to abandon the in-flight examiner turn."""

    response_id: str | None = None


@dataclass(frozen=True)
class RequestTurn:
    """Ask the collaborator to produce the next examiner turn."""


InboundEvent = (
    AgentTranscriptDelta
    | AgentTranscriptDone
    | UserTranscriptDone
    | ServerError
    | ChannelError
)
OutboundEvent = CancelTurn | RequestTurn


def _text(value: Any) -> str:  # noqa: ANN401
    return value if isinstance(value, str) else ""


def decode_server_event(message: str | bytes | dict[str, Any]) -> InboundEvent | None:
    """Translate one data-channel message into a typed inbound event.

    Returns:
        The decoded event, or None for malformed messages and event types the
        controller does not react to.
    """
    if isinstance(message, dict):
        payload = message
    else:
        try:
            payload = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Dropping malformed data channel message")
            return None
        if not isinstance(payload, dict):
            logger.warning("Dropping non-object data channel message")
            return None

    event_type = payload.get("type")
    if event_type == ServerEventType.AGENT_TRANSCRIPT_DELTA:
        return AgentTranscriptDelta(
            delta=_text(payload.get("delta")),
            response_id=payload.get("response_id"),
        )
    if event_type == ServerEventType.AGENT_TRANSCRIPT_DONE:
        return AgentTranscriptDone(
            transcript=_text(payload.get("transcript")),
            response_id=payload.get("response_id"),
        )
    if event_type == ServerEventType.USER_TRANSCRIPT_DONE:
        return UserTranscriptDone(
            transcript=_text(payload.get("transcript")),
            item_id=payload.get("item_id"),
        )
    if event_type == ServerEventType.ERROR:
        error = payload.get("error")
        if isinstance(error, str):
            error = {"message": error}
        elif not isinstance(error, dict):
            error = {}
        return ServerError(
            message=_text(error.get("message")) or "Unknown error",
            code=error.get("code"),
        )

    logger.debug("Ignoring server event type %s", event_type)
    return None


def encode_client_event(event: OutboundEvent) -> str:
    """Serialize an outbound event for the data channel.

    Returns:
        JSON text ready to send.

    Raises:
        TypeError: If ``event`` is not an outbound event.
    """
    if isinstance(event, CancelTurn):
        payload: dict[str, Any] = {"type": ClientEventType.CANCEL_TURN.value}
        if event.response_id:
            payload["response_id"] = event.response_id
    elif isinstance(event, RequestTurn):
        payload = {"type": ClientEventType.REQUEST_TURN.value}
    else:
        msg = f"Unsupported outbound event: {event!r}"
        raise TypeError(msg)
    return json.dumps(payload)
