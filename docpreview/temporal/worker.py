"""Temporal worker for preview generation.

Run with ``python -m docpreview.temporal.worker``. The worker needs the same
storage settings as the API process so both see the same blobs.
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from docpreview.core.config import Settings, load_settings
from docpreview.core.exceptions import StorageNotConfiguredError
from docpreview.services.preview.converter import PyMuPDFConverter
from docpreview.services.preview.generator import PreviewGenerator
from docpreview.services.storage import create_blob_store
from docpreview.temporal.activities import PreviewActivities
from docpreview.temporal.workflows import GeneratePreviewWorkflow
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def connect_with_retries(settings: Settings, max_retries: int = 5, retry_delay: float = 5) -> Client:
    """Connect to Temporal, retrying while the server comes up."""
    attempt = 0
    while True:
        attempt += 1
        try:
            LOGGER.info(f"Connecting to Temporal server at {settings.temporal.target} (Attempt {attempt}/{max_retries})")
            return await Client.connect(settings.temporal.target, namespace=settings.temporal.namespace)
        except Exception as e:
            if attempt >= max_retries:
                LOGGER.error(f"Failed to connect to Temporal server after {max_retries} attempts: {e}")
                raise
            LOGGER.warning(f"Connection attempt {attempt} failed: {e}. Retrying in {retry_delay}s...")
            await asyncio.sleep(retry_delay)


def build_worker(client: Client, settings: Settings) -> Worker:
    store = create_blob_store(settings.storage)
    if store is None:
        raise StorageNotConfiguredError("Blob storage is not configured")

    activities = PreviewActivities(PreviewGenerator(store, PyMuPDFConverter(settings.preview.render_width)))
    return Worker(
        client,
        task_queue=settings.temporal.task_queue,
        workflows=[GeneratePreviewWorkflow],
        activities=[activities.generate_preview],
    )


async def run_worker() -> None:
    settings = load_settings()
    client = await connect_with_retries(settings)
    worker = build_worker(client, settings)
    LOGGER.info(f"Preview worker listening on queue '{settings.temporal.task_queue}'")
    await worker.run()


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
