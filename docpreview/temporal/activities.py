"""Temporal activities for preview generation."""

from typing import Dict

from temporalio import activity
from temporalio.exceptions import ApplicationError

from docpreview.core.exceptions import MissingBlobError, PreviewGenerationError
from docpreview.services.preview.generator import PreviewGenerator
from docpreview.services.preview.jobs import PreviewJob
from docpreview.temporal.workflows import GENERATE_PREVIEW_ACTIVITY
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PreviewActivities:
    """Activity implementations bound to a worker-local generator."""

    def __init__(self, generator: PreviewGenerator):
        self.generator = generator

    @activity.defn(name=GENERATE_PREVIEW_ACTIVITY)
    async def generate_preview(self, payload: Dict) -> dict:
        job = PreviewJob.from_payload(payload)
        try:
            blob_key = await self.generator.generate(job)
        except MissingBlobError as e:
            LOGGER.warning(f"Source blob missing for {job.document_id}", extra={"key": e.key})
            raise ApplicationError(e.message, type="MissingBlobError", non_retryable=True) from e
        except PreviewGenerationError as e:
            LOGGER.error(f"Preview generation failed for {job.document_id}: {e.message}", exc_info=True)
            raise ApplicationError(e.message, type="PreviewGenerationError") from e

        return {"document_id": job.document_id, "version": job.version, "blob_key": blob_key}
