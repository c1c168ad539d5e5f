"""Preview job queues.

``LocalPreviewQueue`` runs jobs as asyncio tasks in this process.
``TemporalPreviewQueue`` hands jobs to a Temporal worker and watches each
workflow's result. Both report the outcome to their subscribers.
"""

import asyncio
import hashlib
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Tuple

from temporalio.client import WorkflowFailureError
from temporalio.exceptions import WorkflowAlreadyStartedError

from docpreview.core.exceptions import QueueError
from docpreview.core.temporal_client import TemporalClientManager
from docpreview.services.preview.generator import PreviewGenerator
from docpreview.services.preview.jobs import PreviewJob
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

ReadyCallback = Callable[[PreviewJob], Awaitable[None]]
FailedCallback = Callable[[PreviewJob, BaseException], Awaitable[None]]


class PreviewQueue(ABC):
    """Accepts preview jobs for asynchronous execution.

    Background tasks are owned by the queue, not by the request that enqueued
    them, so a client disconnect never cancels a job.
    """

    def __init__(self):
        self._listeners: List[Tuple[ReadyCallback, FailedCallback]] = []
        self._tasks: Dict[str, asyncio.Task] = {}

    def subscribe(self, on_ready: ReadyCallback, on_failed: FailedCallback) -> None:
        self._listeners.append((on_ready, on_failed))

    async def _notify_ready(self, job: PreviewJob) -> None:
        for on_ready, _ in self._listeners:
            await on_ready(job)

    async def _notify_failed(self, job: PreviewJob, error: BaseException) -> None:
        for _, on_failed in self._listeners:
            await on_failed(job, error)

    def _is_running(self, job: PreviewJob) -> bool:
        task = self._tasks.get(job.blob_key)
        return task is not None and not task.done()

    def _track(self, job: PreviewJob, coro: Coroutine[Any, Any, None]) -> None:
        self._tasks[job.blob_key] = asyncio.create_task(coro, name=f"preview:{job.blob_key}")

    def _untrack(self, job: PreviewJob) -> None:
        if self._tasks.get(job.blob_key) is asyncio.current_task():
            self._tasks.pop(job.blob_key, None)

    @abstractmethod
    async def enqueue(self, job: PreviewJob) -> None:
        """Submit a job.

        Raises:
            QueueError: If the job could not be submitted
        """

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def drain(self) -> None:
        """Wait for every job submitted so far."""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
        self._tasks.clear()


class LocalPreviewQueue(PreviewQueue):
    """In-process queue backed by asyncio tasks."""

    def __init__(self, generator: PreviewGenerator):
        super().__init__()
        self.generator = generator

    async def enqueue(self, job: PreviewJob) -> None:
        if self._is_running(job):
            LOGGER.debug(f"Preview job already running for {job.blob_key}")
            return
        self._track(job, self._run(job))

    async def _run(self, job: PreviewJob) -> None:
        try:
            await self.generator.generate(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOGGER.error(
                f"Preview generation failed for {job.document_id}: {str(e)}",
                exc_info=True,
                extra={"version": job.version, "namespace": job.namespace},
            )
            await self._notify_failed(job, e)
        else:
            await self._notify_ready(job)
        finally:
            self._untrack(job)


def workflow_id_for(job: PreviewJob) -> str:
    """Deterministic Temporal workflow id; duplicates are rejected server-side."""
    digest = hashlib.sha256(job.blob_key.encode("utf-8")).hexdigest()[:40]
    return f"preview-{digest}"


class TemporalPreviewQueue(PreviewQueue):
    """Queue that starts one ``GeneratePreviewWorkflow`` per preview blob."""

    def __init__(self, client_manager: TemporalClientManager, task_queue: str):
        super().__init__()
        self.client_manager = client_manager
        self.task_queue = task_queue

    async def enqueue(self, job: PreviewJob) -> None:
        # Imported here so the API process does not load workflow code at import time
        from docpreview.temporal.workflows import GeneratePreviewWorkflow

        workflow_id = workflow_id_for(job)
        try:
            client = await self.client_manager.get_client()
            try:
                handle = await client.start_workflow(
                    GeneratePreviewWorkflow.run,
                    job.to_payload(),
                    id=workflow_id,
                    task_queue=self.task_queue,
                )
                LOGGER.info(f"Started preview workflow {workflow_id}", extra={"blob_key": job.blob_key})
            except WorkflowAlreadyStartedError:
                LOGGER.info(f"Preview workflow {workflow_id} already running")
                handle = client.get_workflow_handle(workflow_id)
        except Exception as e:
            LOGGER.error(f"Failed to start preview workflow: {str(e)}", exc_info=True)
            raise QueueError(f"Failed to enqueue preview job: {str(e)}", original_error=e)

        if not self._is_running(job):
            self._track(job, self._watch(job, handle))

    async def _watch(self, job: PreviewJob, handle) -> None:
        """Forward the workflow outcome to subscribers."""
        try:
            await handle.result()
        except asyncio.CancelledError:
            raise
        except WorkflowFailureError as e:
            cause = e.cause or e
            LOGGER.warning(
                f"Preview workflow failed for {job.document_id}: {cause}",
                extra={"workflow_id": handle.id, "blob_key": job.blob_key},
            )
            await self._notify_failed(job, cause)
        except Exception as e:
            LOGGER.error(
                f"Lost track of preview workflow for {job.document_id}: {str(e)}",
                exc_info=True,
                extra={"blob_key": job.blob_key},
            )
            await self._notify_failed(job, e)
        else:
            await self._notify_ready(job)
        finally:
            self._untrack(job)

    async def close(self) -> None:
        await super().close()
        await self.client_manager.close()
