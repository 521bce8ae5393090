"""
Forwarder posting relay commands to the SDS indexing node API.

Delivery is best effort: one POST per command, no retries. A non-2xx reply is
logged and otherwise ignored; only a failure to serialize or to send the
request is reported to the caller.
"""

import json
import logging
from typing import Any

import httpx

from .config import MonitoringConfig, SdsConfig
from .errors import SerializationError, TransportError
from .models import Command

logger = logging.getLogger(__name__)


class SdsForwarder:
    """Sends commands to the SP node over HTTP."""

    def __init__(self, sds: SdsConfig, monitoring: MonitoringConfig | None = None):
        """
        Initialize the forwarder.

        Args:
            sds: SP node address and API port
            monitoring: Monitoring settings providing the request timeout
        """
        self.base_url = sds.base_url
        self.request_timeout = monitoring.request_timeout if monitoring else None

    def _client(self) -> httpx.AsyncClient:
        if self.request_timeout is None:
            return httpx.AsyncClient()
        return httpx.AsyncClient(timeout=self.request_timeout)

    async def post(self, path: str, command: Command) -> None:
        """
        Post a command as JSON to an SP node endpoint.

        Args:
            path: Endpoint path, e.g. "/pp/activated"
            command: Command to serialize as the request body

        Raises:
            SerializationError: If the command cannot be encoded as JSON
            TransportError: If the request cannot be sent
        """
        try:
            body = json.dumps(command.to_dict())
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Error when trying to marshal data to json: {e}") from e

        url = self.base_url + path
        logger.debug(f"Posting to {url}: {body}")

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    content=body,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Error when calling {path} endpoint in SP node: {e}") from e

        msg = self._response_message(response)
        logger.info(f"{path} endpoint response from SP node: status={response.status_code} msg={msg}")

    @staticmethod
    def _response_message(response: httpx.Response) -> Any:
        """Return the Msg field of a JSON reply, or None if there is none."""
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload.get("Msg") if isinstance(payload, dict) else None
