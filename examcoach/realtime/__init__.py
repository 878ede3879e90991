"""Realtime voice session: negotiation, transport and turn-taking."""

from .events import (
    AgentTranscriptDelta,
    AgentTranscriptDone,
    CancelTurn,
    ChannelError,
    RequestTurn,
    ServerError,
    TurnState,
    UserTranscriptDone,
    decode_server_event,
    encode_client_event,
)
from .instructions import IELTS_INSTRUCTIONS
from .session import RealtimeSession, SessionConfig, SessionNegotiator
from .transport import RealtimeTransport
from .turn_controller import (
    MediaControls,
    TranscriptCues,
    TurnController,
    detect_cues,
)

__all__ = [
    "IELTS_INSTRUCTIONS",
    "AgentTranscriptDelta",
    "AgentTranscriptDone",
    "CancelTurn",
    "ChannelError",
    "MediaControls",
    "RealtimeSession",
    "RealtimeTransport",
    "RequestTurn",
    "ServerError",
    "SessionConfig",
    "SessionNegotiator",
    "TranscriptCues",
    "TurnController",
    "TurnState",
    "UserTranscriptDone",
    "decode_server_event",
    "detect_cues",
    "encode_client_event",
]
