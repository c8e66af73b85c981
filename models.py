"""Data models for admin API records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class JobStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    FILLED = "filled"
    DRAFT = "draft"


def _pick(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return default


@dataclass
class Company:
    id: Any
    name: str
    website: str = ""
    email: str = ""
    logo: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Company":
        return cls(
            id=data.get("id"),
            name=_pick(data, "name", "companyName", "company_name", default=""),
            website=_pick(data, "website", default=""),
            email=_pick(data, "email", default=""),
            logo=_pick(data, "logo", "companyLogo", "company_logo", default=""),
        )


@dataclass
class Job:
    id: Any
    title: str
    status: Optional[JobStatus]
    company: Optional[Company] = None
    category_id: Any = None
    province_ids: List[Any] = field(default_factory=list)
    job_type: str = ""
    description: str = ""
    submission_email: str = ""
    submission_guidelines: str = ""
    deadline: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        raw_status = _pick(data, "status")
        try:
            status = JobStatus(raw_status) if raw_status else None
        except ValueError:
            status = None
        company = _pick(data, "company", "Company")
        return cls(
            id=data.get("id"),
            title=_pick(data, "title", default=""),
            status=status,
            company=Company.from_dict(company) if isinstance(company, Mapping) else None,
            category_id=_pick(data, "categoryId", "category_id"),
            province_ids=list(_pick(data, "province_ids", "provinceIds", default=[]) or []),
            job_type=_pick(data, "type", "jobType", "job_type", default=""),
            description=_pick(data, "description", default=""),
            submission_email=_pick(data, "submission_email", "submissionEmail", default=""),
            submission_guidelines=_pick(data, "submission_guidelines", "submissionGuidelines", default=""),
            deadline=_pick(data, "deadline", "applicationDeadline", default=""),
        )


@dataclass
class Pagination:
    current_page: int = 1
    total_pages: int = 1
    total_items: int = 0
    items_per_page: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False

    @classmethod
    def from_response(cls, payload: Any) -> "Pagination":
        """Read the ``pagination`` block from a list response (``data.pagination`` or top level)."""
        block: Mapping[str, Any] = {}
        if isinstance(payload, Mapping):
            data = payload.get("data")
            if isinstance(data, Mapping) and isinstance(data.get("pagination"), Mapping):
                block = data["pagination"]
            elif isinstance(payload.get("pagination"), Mapping):
                block = payload["pagination"]
        current = int(block.get("currentPage", 1) or 1)
        total_pages = int(block.get("totalPages", 1) or 1)
        return cls(
            current_page=current,
            total_pages=total_pages,
            total_items=int(block.get("totalItems", 0) or 0),
            items_per_page=int(block.get("itemsPerPage", 0) or 0),
            has_next_page=bool(block.get("hasNextPage", current < total_pages)),
            has_prev_page=bool(block.get("hasPrevPage", current > 1)),
        )


@dataclass
class UploadResult:
    file_name: str
    original_name: str
    file_path: str
    file_size: int
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadResult":
        return cls(
            file_name=data.get("fileName", ""),
            original_name=data.get("originalName", ""),
            file_path=data.get("filePath", ""),
            file_size=int(data.get("fileSize", 0) or 0),
            raw=dict(data),
        )


@dataclass
class UploadStatus:
    file_name: str
    file_size: int
    total_chunks: int
    uploaded_chunks: List[int] = field(default_factory=list)
    progress: int = 0
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadStatus":
        session = data.get("session", data)
        return cls(
            file_name=session.get("fileName", ""),
            file_size=int(session.get("fileSize", 0) or 0),
            total_chunks=int(session.get("totalChunks", 0) or 0),
            uploaded_chunks=[int(n) for n in session.get("uploadedChunks", [])],
            progress=int(session.get("progress", 0) or 0),
            created_at=session.get("createdAt", ""),
        )
