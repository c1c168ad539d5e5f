"""Preview generation Temporal workflow."""

from datetime import timedelta
from typing import Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

GENERATE_PREVIEW_ACTIVITY = "generate_preview_activity"


@workflow.defn
class GeneratePreviewWorkflow:
    """Renders one preview blob.

    The workflow id is derived from the preview blob key, so Temporal itself
    rejects a second concurrent run for the same document version.
    """

    def __init__(self):
        self._status = "initialized"

    @workflow.query
    def get_status(self) -> dict:
        return {"status": self._status}

    @workflow.run
    async def run(self, payload: Dict) -> dict:
        self._status = "running"
        result = await workflow.execute_activity(
            GENERATE_PREVIEW_ACTIVITY,
            payload,
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(
                initial_interval=timedelta(seconds=2),
                maximum_attempts=3,
                non_retryable_error_types=["MissingBlobError"],
            ),
        )
        self._status = "completed"
        return result
