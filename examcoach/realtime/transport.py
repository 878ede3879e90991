"""Offer/answer exchange with the realtime media endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from examcoach.config import config
from examcoach.errors import TransportError

if TYPE_CHECKING:
    from .session import RealtimeSession

logger = config.get_logger(__name__)


class RealtimeTransport:
    """Trades a local SDP offer for the collaborator's answer.

    Authentication uses the session's ephemeral credential, never the
    long-lived API key.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        calls_url: str | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            http_client: Client used for the exchange. One is created (and
                owned) when omitted.
            calls_url: Media endpoint. If None, uses config.REALTIME_CALLS_URL.
        """
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(
            timeout=config.HTTP_TIMEOUT_SECONDS,
            headers=config.get_api_headers(),
        )
        self.calls_url = calls_url or config.REALTIME_CALLS_URL

    def exchange_offer(self, session: RealtimeSession, offer_sdp: str) -> str:
        """Send the SDP offer and return the SDP answer.

        Returns:
            The answer SDP text.

        Raises:
            TransportError: If the credential has expired, the offer is empty,
                or the endpoint rejects the exchange.
        """
        if not offer_sdp.strip():
            msg = "SDP offer is empty"
            raise TransportError(msg)
        if session.is_expired():
            msg = f"Credential for session {session.session_id} has expired"
            raise TransportError(msg)

        try:
            response = self.http_client.post(
                self.calls_url,
                params={"model": session.model},
                content=offer_sdp,
                headers={
                    "Authorization": f"Bearer {session.credential}",
                    "Content-Type": "application/sdp",
                },
            )
        except httpx.HTTPError as exc:
            logger.exception("SDP exchange request failed")
            msg = f"Failed to exchange SDP: {exc}"
            raise TransportError(msg) from exc

        if not response.is_success:
            logger.error(
                "SDP exchange error for session %s: %d",
                session.session_id,
                response.status_code,
            )
            msg = f"Failed to exchange SDP (status {response.status_code})"
            raise TransportError(msg)

        logger.info("Received SDP answer for session %s", session.session_id)
        return response.text

    def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            self.http_client.close()
