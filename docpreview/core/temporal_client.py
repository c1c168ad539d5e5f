"""Temporal client configuration and connection management.

This module centralizes Temporal client access in the core layer so that
the preview queue reuses a single lazily created connection.
"""

from typing import Optional

from temporalio.client import Client as TemporalClient

from docpreview.core.config import TemporalSettings


class TemporalClientManager:
    """Manages Temporal client connection.

    Lazily creates a Temporal client and keeps it around for reuse.
    """

    def __init__(self, settings: TemporalSettings):
        self.settings = settings
        self._client: Optional[TemporalClient] = None

    async def get_client(self) -> TemporalClient:
        """Get or create Temporal client instance.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            self._client = await TemporalClient.connect(
                self.settings.target,
                namespace=self.settings.namespace,
            )
        return self._client

    async def close(self) -> None:
        """Drop the cached client; the next call reconnects."""
        self._client = None
