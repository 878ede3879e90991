"""Realtime session negotiation with context injection."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from examcoach.config import config
from examcoach.errors import SessionCreationError
from examcoach.retriever import format_context_for_ai

from .instructions import IELTS_INSTRUCTIONS

if TYPE_CHECKING:
    from examcoach.retriever import Retriever

logger = config.get_logger(__name__)

TURN_DETECTION = {
    "type": "server_vad",
    "threshold": 0.5,
    "prefix_padding_ms": 300,
    "silence_duration_ms": 500,
}
AUDIO_FORMAT = "pcm16"
TRANSCRIPTION_MODEL = "whisper-1"
MODALITIES = ["audio", "text"]


@dataclass(frozen=True)
class SessionConfig:
    """Caller overrides for a new interview session."""

    model: str | None = None
    voice: str | None = None
    instructions: str | None = None


@dataclass(frozen=True)
class RealtimeSession:
    """A negotiated session and its single-use transport credential.

    The credential is kept out of ``repr`` so it cannot leak into logs.
    """

    session_id: str
    credential: str = field(repr=False)
    expires_at: int | None
    model: str
    voice: str
    instructions: str = field(repr=False)
    sources: tuple[str, ...] = ()

    def is_expired(self, now: float | None = None) -> bool:
        """Check expiry against ``now`` in epoch seconds."""  # noqa: DOC201
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at

    def to_client_payload(self) -> dict[str, Any]:
        """Return the fields the browser needs to connect."""  # noqa: DOC201
        return {
            "sessionId": self.session_id,
            "clientSecret": {"value": self.credential, "expires_at": self.expires_at},
            "expiresAt": self.expires_at,
        }


class SessionNegotiator:
    """Creates realtime sessions whose instructions carry retrieved material."""

    def __init__(  # noqa: PLR0913
        self,
        retriever: Retriever | None = None,
        api_key: str | None = None,
        *,
        http_client: httpx.Client | None = None,
        sessions_url: str | None = None,
        bootstrap_query: str | None = None,
        top_k: int | None = None,
    ) -> None:
        """Initialize the negotiator.

        Args:
            retriever: Source of reference material; None disables injection.
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY.
            http_client: Client used for the session request. One is created
                (and owned) when omitted.
            sessions_url: Session-creation endpoint. If None, uses
                config.REALTIME_SESSIONS_URL.
            bootstrap_query: Query used to pick material for the opening
                instructions. If None, uses config.SESSION_BOOTSTRAP_QUERY.
            top_k: Chunks to inject. If None, uses config.RETRIEVAL_TOP_K.
        """
        self.retriever = retriever
        self._api_key = api_key or config.get_openai_api_key()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(
            timeout=config.HTTP_TIMEOUT_SECONDS,
            headers=config.get_api_headers(),
        )
        self.sessions_url = sessions_url or config.REALTIME_SESSIONS_URL
        self.bootstrap_query = bootstrap_query or config.SESSION_BOOTSTRAP_QUERY
        self.top_k = top_k or config.RETRIEVAL_TOP_K

    def build_instructions(self, base: str | None = None) -> tuple[str, list[str]]:
        """Resolve the instruction text and append retrieved material.

        Retrieval problems never propagate; the base text is returned instead.

        Returns:
            The instructions and the source file names that were injected.
        """
        instructions = base or IELTS_INSTRUCTIONS
        if self.retriever is None:
            return instructions, []

        try:
            retrieved = self.retriever.retrieve_context(
                self.bootstrap_query, top_k=self.top_k
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not retrieve context from materials: %s", exc)
            return instructions, []

        if not retrieved.has_context:
            logger.info("No materials available, using base instructions")
            return instructions, []

        logger.info("Injected context from %d material(s)", len(retrieved.sources))
        return instructions + format_context_for_ai(retrieved), retrieved.sources

    @staticmethod
    def build_session_payload(
        model: str,
        voice: str,
        instructions: str,
    ) -> dict[str, Any]:
        """Assemble the session-creation request body.

        Returns:
            JSON-serializable session configuration.
        """
        return {
            "model": model,
            "voice": voice,
            "instructions": instructions,
            "modalities": list(MODALITIES),
            "turn_detection": dict(TURN_DETECTION),
            "input_audio_format": AUDIO_FORMAT,
            "output_audio_format": AUDIO_FORMAT,
            "input_audio_transcription": {"model": TRANSCRIPTION_MODEL},
            "temperature": config.REALTIME_TEMPERATURE,
            "max_response_output_tokens": config.REALTIME_MAX_OUTPUT_TOKENS,
        }

    def create_session(
        self, session_config: SessionConfig | None = None
    ) -> RealtimeSession:
        """Create a realtime session with the conversational collaborator.

        Returns:
            The session id, its ephemeral credential and expiry.

        Raises:
            SessionCreationError: If no API key is configured, the request
                fails, or the response is not a usable session.
        """
        session_config = session_config or SessionConfig()
        if not self._api_key:
            msg = "API key not configured"
            raise SessionCreationError(msg, status_code=401, body=msg)

        model = session_config.model or config.REALTIME_MODEL
        voice = session_config.voice or config.REALTIME_VOICE
        instructions, sources = self.build_instructions(session_config.instructions)
        payload = self.build_session_payload(model, voice, instructions)

        logger.info("Creating Realtime session (model=%s, voice=%s)", model, voice)
        try:
            response = self.http_client.post(
                self.sessions_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.exception("Realtime session request failed")
            msg = "Failed to reach the realtime session endpoint"
            raise SessionCreationError(msg, body=str(exc)) from exc

        if not response.is_success:
            logger.error(
                "Realtime session creation failed with status %d", response.status_code
            )
            msg = "Failed to create Realtime session"
            raise SessionCreationError(
                msg, status_code=response.status_code, body=response.text
            )

        session = self._parse_session(response, model, voice, instructions, sources)
        logger.info("Session created successfully: %s", session.session_id)
        return session

    @staticmethod
    def _parse_session(  # noqa: PLR0913, PLR0917
        response: httpx.Response,
        model: str,
        voice: str,
        instructions: str,
        sources: list[str],
    ) -> RealtimeSession:
        try:
            data = response.json()
            client_secret = data["client_secret"]
            credential = client_secret["value"]
            session_id = data["id"]
        except (ValueError, KeyError, TypeError) as exc:
            msg = "Realtime session response is missing the session id or secret"
            raise SessionCreationError(
                msg, status_code=response.status_code, body=response.text
            ) from exc

        expires_at = client_secret.get("expires_at") or data.get("expires_at")
        return RealtimeSession(
            session_id=session_id,
            credential=credential,
            expires_at=int(expires_at) if expires_at is not None else None,
            model=data.get("model") or model,
            voice=data.get("voice") or voice,
            instructions=instructions,
            sources=tuple(sources),
        )

    def close(self) -> None:
        """Close the HTTP client if this negotiator created it."""
        if self._owns_client:
            self.http_client.close()
