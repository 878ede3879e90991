"""Client-side turn-taking state machine for a live interview session."""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from examcoach.config import config
from examcoach.errors import TurnStateError
from examcoach.models import TranscriptEntry

from .events import (
    AgentTranscriptDelta,
    AgentTranscriptDone,
    CancelTurn,
    ChannelError,
    InboundEvent,
    OutboundEvent,
    RequestTurn,
    ServerError,
    TurnState,
    UserTranscriptDone,
    decode_server_event,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = config.get_logger(__name__)

ROLE_EXAMINER = "examiner"
ROLE_USER = "user"
ROLE_SYSTEM = "system"

_SAMPLE_ANSWER = re.compile(
    r"sample answer[:\s]+(.*?)(?=\n\n|$)", re.IGNORECASE | re.DOTALL
)


class MediaControls(Protocol):
    """Local media owned by the transport adapter."""

    def set_remote_muted(self, muted: bool) -> None: ...  # noqa: FBT001

    def set_microphone_enabled(self, enabled: bool) -> None: ...  # noqa: FBT001

    def release(self) -> None:
        """Stop the microphone and close the event channel."""
        ...


@dataclass(frozen=True)
class TranscriptCues:
    """UI routing hints found in an examiner transcript."""

    has_feedback: bool = False
    sample_answer: str | None = None
    part: int | None = None


def detect_cues(text: str) -> TranscriptCues:
    """Scan an examiner transcript for feedback, sample-answer and part cues.

    This is keyword matching only; nothing downstream depends on it for
    correctness.

    Returns:
        The cues found in ``text``.
    """
    lower_text = text.lower()

    has_feedback = "band" in lower_text or "feedback" in lower_text

    sample_answer = None
    if "sample" in lower_text or "example answer" in lower_text:
        match = _SAMPLE_ANSWER.search(text)
        if match:
            sample_answer = match.group(1).strip() or None

    part = None
    if "part 2" in lower_text or "task card" in lower_text:
        part = 2
    elif "part 3" in lower_text:
        part = 3

    return TranscriptCues(
        has_feedback=has_feedback, sample_answer=sample_answer, part=part
    )


class TurnController:
    """Drives push-to-talk, barge-in and transcript assembly for one session.

    The controller is single-threaded: the transport adapter feeds it one
    inbound event at a time in channel order and performs the outbound
    signals it emits through ``send``.
    """

    def __init__(
        self,
        send: Callable[[OutboundEvent], None],
        media: MediaControls | None = None,
        on_entry: Callable[[TranscriptEntry], None] | None = None,
        *,
        strict: bool = False,
    ) -> None:
        """Initialize the controller in the Idle state.

        Args:
            send: Delivers outbound events to the event channel.
            media: Microphone and remote playback controls.
            on_entry: Called with every new conversation log entry.
            strict: Raise TurnStateError for events delivered after close
                instead of ignoring them.
        """
        self._send = send
        self._media = media
        self._on_entry = on_entry
        self._strict = strict

        self._state = TurnState.IDLE
        self._buffer: list[str] = []
        self._current_response_id: str | None = None
        self._cancelled_responses: set[str] = set()

        self.history: list[TranscriptEntry] = []
        self.current_part = 1
        self.turn_count = 0
        self.latest_feedback: str | None = None
        self.latest_sample_answer: str | None = None

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is TurnState.CLOSED

    @property
    def partial_transcript(self) -> str:
        """Examiner speech received so far in the current turn."""
        return "".join(self._buffer)

    def _transition(self, new_state: TurnState) -> None:
        if new_state is not self._state:
            logger.debug("Turn state %s -> %s", self._state.value, new_state.value)
            self._state = new_state

    def _log_entry(self, role: str, content: str) -> None:
        entry = TranscriptEntry(
            role=role,
            content=content,
            timestamp=datetime.datetime.now(tz=datetime.UTC).isoformat(),
        )
        self.history.append(entry)
        if self._on_entry is not None:
            self._on_entry(entry)

    def _emit(self, event: OutboundEvent) -> bool:
        try:
            self._send(event)
        except Exception:
            logger.exception("Failed to send %s", type(event).__name__)
            self.close("Event channel send failed")
            return False
        return True

    def _reject_if_closed(self, action: str) -> bool:
        if not self.is_closed:
            return False
        if self._strict:
            msg = f"Cannot {action}: session is closed"
            raise TurnStateError(msg)
        logger.debug("Ignoring %s after close", action)
        return True

    def open(self) -> None:
        """Start the interview once the event channel is open.

        Requests the examiner's opening turn.
        """
        if self._reject_if_closed("open"):
            return
        if self._state is not TurnState.IDLE:
            logger.warning("open() called in state %s; ignoring", self._state.value)
            return

        self._log_entry(ROLE_SYSTEM, "Data channel established")
        if self._emit(RequestTurn()):
            self._transition(TurnState.AWAITING_AGENT_RESPONSE)

    def start_talking(self) -> bool:
        """Handle the candidate pressing push-to-talk.

        Interrupts the examiner when it is speaking.

        Returns:
            True if the controller is now listening to the candidate.
        """
        if self._reject_if_closed("start talking"):
            return False
        if self._state not in {TurnState.IDLE, TurnState.AGENT_SPEAKING}:
            logger.info(
                "Ignoring start talking while %s", self._state.value.replace("_", " ")
            )
            return False

        if self._state is TurnState.AGENT_SPEAKING:
            response_id = self._current_response_id
            if not self._emit(CancelTurn(response_id=response_id)):
                return False
            if response_id:
                self._cancelled_responses.add(response_id)
            self._buffer.clear()
            self._current_response_id = None
            logger.info("Examiner turn interrupted by candidate")

        if self._media is not None:
            self._media.set_remote_muted(True)
            self._media.set_microphone_enabled(True)
        self._transition(TurnState.LISTENING_TO_USER)
        return True

    def stop_talking(self) -> bool:
        """Handle the candidate releasing push-to-talk.

        Returns:
            True if the next examiner turn was requested.
        """
        if self._reject_if_closed("stop talking"):
            return False
        if self._state is not TurnState.LISTENING_TO_USER:
            logger.debug("Ignoring stop talking while %s", self._state.value)
            return False

        if self._media is not None:
            self._media.set_remote_muted(False)
        if not self._emit(RequestTurn()):
            return False
        self._transition(TurnState.AWAITING_AGENT_RESPONSE)
        return True

    def handle_message(self, message: str | bytes) -> None:
        """Decode one raw data-channel message and process it."""
        event = decode_server_event(message)
        if event is not None:
            self.process(event)

    def process(self, event: InboundEvent) -> None:
        """Apply one inbound event to the state machine."""
        if self._reject_if_closed(f"process {type(event).__name__}"):
            return

        if isinstance(event, AgentTranscriptDelta):
            self._on_agent_delta(event)
        elif isinstance(event, AgentTranscriptDone):
            self._on_agent_done(event)
        elif isinstance(event, UserTranscriptDone):
            logger.info(
                "Candidate transcript received (%d chars)", len(event.transcript)
            )
            self._log_entry(ROLE_USER, event.transcript)
        elif isinstance(event, ServerError):
            logger.error("Realtime API error: %s", event.message)
            self._log_entry(ROLE_SYSTEM, f"Error: {event.message}")
        elif isinstance(event, ChannelError):
            self.close(f"Channel error: {event.message}")

    def _is_stale(self, response_id: str | None) -> bool:
        if response_id is not None and response_id in self._cancelled_responses:
            return True
        return self._state not in {
            TurnState.AWAITING_AGENT_RESPONSE,
            TurnState.AGENT_SPEAKING,
        }

    def _on_agent_delta(self, event: AgentTranscriptDelta) -> None:
        if self._is_stale(event.response_id):
            logger.debug("Dropping stale transcript delta in %s", self._state.value)
            return

        if self._current_response_id is None:
            self._current_response_id = event.response_id
        self._buffer.append(event.delta)
        self._transition(TurnState.AGENT_SPEAKING)

    def _on_agent_done(self, event: AgentTranscriptDone) -> None:
        if self._is_stale(event.response_id):
            logger.debug("Dropping stale transcript in %s", self._state.value)
            if event.response_id is not None:
                self._cancelled_responses.discard(event.response_id)
            return

        transcript = event.transcript or self.partial_transcript
        self._buffer.clear()
        self._current_response_id = None
        # Responses finish in channel order, so earlier cancellations are settled.
        self._cancelled_responses.clear()
        self.turn_count += 1

        self._log_entry(ROLE_EXAMINER, transcript)
        self._apply_cues(detect_cues(transcript), transcript)
        self._transition(TurnState.IDLE)

    def _apply_cues(self, cues: TranscriptCues, transcript: str) -> None:
        if cues.has_feedback:
            self.latest_feedback = transcript
        if cues.sample_answer:
            self.latest_sample_answer = cues.sample_answer
        if cues.part is not None and cues.part != self.current_part:
            logger.info("Interview moved to part %d", cues.part)
            self.current_part = cues.part

    def close(self, reason: str = "Interview ended") -> None:
        """Tear the session down; later events are ignored."""
        if self.is_closed:
            return

        self._transition(TurnState.CLOSED)
        self._buffer.clear()
        self._current_response_id = None
        self._cancelled_responses.clear()
        self._log_entry(ROLE_SYSTEM, reason)
        logger.info("Turn controller closed: %s", reason)

        if self._media is not None:
            self._media.release()
