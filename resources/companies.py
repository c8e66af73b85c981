"""Client for the companies collection."""

from __future__ import annotations

from typing import Any, Optional

from resources.base import ResourceClient
from queries import QueryResult


class CompaniesResource(ResourceClient):
    def __init__(self, client, cache, token: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(client, cache, "companies", token=token, **kwargs)

    def jobs(self, company_id: Any) -> QueryResult:
        # kept under the companies prefix so company mutations invalidate it
        key = ["companies", str(company_id), "jobs"]
        return self.query(key, f"companies/{company_id}/jobs", mount=False).fetch()
