"""Preview generation: source blob in, preview blob out."""

from docpreview.core.exceptions import AppError, PreviewGenerationError
from docpreview.services.preview.converter import PreviewConverter
from docpreview.services.preview.jobs import PreviewJob
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PreviewGenerator:
    """Runs a :class:`PreviewJob` against a blob store."""

    def __init__(self, store: BlobStore, converter: PreviewConverter):
        self.store = store
        self.converter = converter

    @property
    def content_type(self) -> str:
        return self.converter.content_type

    async def generate(self, job: PreviewJob) -> str:
        """Render and store the preview for ``job``.

        Returns:
            The preview blob key

        Raises:
            MissingBlobError: If the source document blob is gone
            PreviewGenerationError: If rendering fails
        """
        if await self.store.exists(job.blob_key):
            LOGGER.info(f"Preview already present for {job.document_id}@{job.version}")
            return job.blob_key

        source = await self.store.get(job.source_key)
        try:
            image = await self.converter.convert(source, job.document_type)
        except AppError:
            raise
        except Exception as e:
            LOGGER.error(f"Converter crashed for {job.document_id}: {str(e)}", exc_info=True)
            raise PreviewGenerationError(f"Preview conversion failed: {str(e)}", original_error=e)

        await self.store.put(job.blob_key, image, self.converter.content_type, overwrite=True)
        LOGGER.info(
            f"Generated preview for {job.document_id}",
            extra={"version": job.version, "namespace": job.namespace, "bytes": len(image)},
        )
        return job.blob_key
