"""Client for the jobs collection."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

from errors import ApiError
from models import Job, Pagination
from resources.base import ResourceClient, extract_records

logger = logging.getLogger(__name__)


class JobsResource(ResourceClient):
    def __init__(self, client, cache, token: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(client, cache, "jobs", token=token, **kwargs)

    def list_jobs(self, params: Optional[Mapping[str, Any]] = None) -> Tuple[List[Job], Pagination]:
        result = self.list(params)
        if result.is_error:
            raise result.error
        jobs = [Job.from_dict(row) for row in extract_records(result.data, "jobs")]
        return jobs, Pagination.from_response(result.data)

    def toggle_status(self, job_id: Any) -> Any:
        try:
            response = self.client.patch(f"jobs/{job_id}/toggle-status", token=self.token)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to update job status")
            raise
        self.cache.invalidate(prefix=["jobs"])
        logger.info("Toggled status of job %s", job_id)
        return response
