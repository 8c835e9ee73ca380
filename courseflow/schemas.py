"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from courseflow.models import MergeRequestStatus, ResourceType, VersionStatus


def _non_blank(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError("Must not be blank")
    return v.strip() if v is not None else v


# ==================== Versions ====================


class VersionResponse(BaseModel):
    """Schema for course version response."""

    id: int
    course_id: int
    branch_id: int
    version_label: str
    summary: Optional[str] = None
    status: VersionStatus
    is_active: bool
    is_published: bool
    is_tip: bool
    parent_version_id: Optional[int] = None
    based_on_version_id: Optional[int] = None
    merged_into_version_id: Optional[int] = None
    merge_request_id: Optional[int] = None
    created_by: Optional[int] = None
    reviewed_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InitialVersionCreate(BaseModel):
    """Schema for the first, immediately live version of a course."""

    version_label: str
    summary: Optional[str] = None

    _label = field_validator("version_label")(_non_blank)


class DraftCreate(BaseModel):
    """Schema for opening a draft on top of an existing version."""

    base_version_id: int
    version_label: Optional[str] = None
    summary: Optional[str] = None
    branch_id: Optional[int] = None

    _label = field_validator("version_label")(_non_blank)


class DraftUpdate(BaseModel):
    """Schema for editing a draft."""

    version_label: Optional[str] = None
    summary: Optional[str] = None

    _label = field_validator("version_label")(_non_blank)


# ==================== Branches ====================


class BranchCreate(BaseModel):
    """Schema for forking a branch from a version."""

    name: str
    description: Optional[str] = None
    base_version_id: int
    new_version_label: str

    _name = field_validator("name", "new_version_label")(_non_blank)


class BranchResponse(BaseModel):
    """Schema for branch response."""

    id: int
    course_id: int
    name: str
    description: Optional[str] = None
    parent_branch_id: Optional[int] = None
    base_version_id: Optional[int] = None
    is_default: bool
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    tip_version: Optional[VersionResponse] = None
    base_version: Optional[VersionResponse] = None

    class Config:
        from_attributes = True


# ==================== Merge requests ====================


class MergeRequestCreate(BaseModel):
    """Schema for opening a merge request."""

    source_branch_id: int
    target_branch_id: int
    title: str
    summary: Optional[str] = None
    payload: Optional[dict[str, Any]] = None

    _title = field_validator("title")(_non_blank)


class MergeRequestReview(BaseModel):
    """Schema for reviewing a merge request."""

    decision: str

    @field_validator("decision")
    @classmethod
    def validate_decision(cls, v: str) -> str:
        """Validate decision is approve or reject."""
        if v not in ("approve", "reject"):
            raise ValueError("Decision must be one of: approve, reject")
        return v


class MergeRequestResponse(BaseModel):
    """Schema for merge request response."""

    id: int
    course_id: int
    source_branch_id: int
    target_branch_id: int
    source_version_id: int
    target_version_id: Optional[int] = None
    title: str
    summary: Optional[str] = None
    status: MergeRequestStatus
    opened_by: Optional[int] = None
    reviewer_id: Optional[int] = None
    opened_at: datetime
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    payload: Optional[dict[str, Any]] = None

    class Config:
        from_attributes = True


# ==================== Courses ====================


class CourseCreate(BaseModel):
    """Schema for creating a course."""

    title: str
    summary: Optional[str] = None
    description: Optional[str] = None
    visibility_override: bool = False
    initial_version_label: Optional[str] = None
    initial_version_summary: Optional[str] = None

    _title = field_validator("title", "initial_version_label")(_non_blank)


class CourseUpdate(BaseModel):
    """Schema for updating a course."""

    title: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    visibility_override: Optional[bool] = None
    active_version_id: Optional[int] = None

    _title = field_validator("title")(_non_blank)


class CourseResponse(BaseModel):
    """Schema for course response, with its branch graph when loaded."""

    id: int
    title: str
    summary: Optional[str] = None
    description: Optional[str] = None
    visibility_override: bool
    visible_for_students: bool
    active_version_id: Optional[int] = None
    default_branch_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    primary_version: Optional[VersionResponse] = None
    branches: list[BranchResponse] = []
    pending_merge_requests: list[MergeRequestResponse] = []


# ==================== Topics & resources ====================


class TopicCreate(BaseModel):
    """Schema for creating a topic."""

    title: str
    description: Optional[str] = None
    order_index: Optional[int] = None

    _title = field_validator("title")(_non_blank)

    @field_validator("order_index")
    @classmethod
    def validate_order_index(cls, v: Optional[int]) -> Optional[int]:
        """Validate order index is 1-based."""
        if v is not None and v < 1:
            raise ValueError("Order index must be 1 or greater")
        return v


class TopicUpdate(BaseModel):
    """Schema for updating a topic."""

    title: Optional[str] = None
    description: Optional[str] = None

    _title = field_validator("title")(_non_blank)


class TopicResponse(BaseModel):
    """Schema for topic response."""

    id: int
    course_version_id: int
    title: str
    description: Optional[str] = None
    order_index: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResourceCreate(BaseModel):
    """Schema for creating a resource."""

    title: str
    description: Optional[str] = None
    resource_type: ResourceType
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    external_url: Optional[str] = None
    order_index: Optional[int] = None

    _title = field_validator("title")(_non_blank)

    @field_validator("order_index")
    @classmethod
    def validate_order_index(cls, v: Optional[int]) -> Optional[int]:
        """Validate order index is 1-based."""
        if v is not None and v < 1:
            raise ValueError("Order index must be 1 or greater")
        return v


class ResourceUpdate(BaseModel):
    """Schema for updating a resource."""

    title: Optional[str] = None
    description: Optional[str] = None
    resource_type: Optional[ResourceType] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    external_url: Optional[str] = None

    _title = field_validator("title")(_non_blank)


class ResourceResponse(BaseModel):
    """Schema for resource response."""

    id: int
    topic_id: int
    title: str
    description: Optional[str] = None
    resource_type: ResourceType
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    external_url: Optional[str] = None
    order_index: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReorderItem(BaseModel):
    id: int
    order_index: int


class ReorderRequest(BaseModel):
    """Schema for bulk reordering of topics or resources."""

    items: list[ReorderItem]

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[ReorderItem]) -> list[ReorderItem]:
        """Validate ids are unique and indices 1-based."""
        ids = [item.id for item in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Each item may appear only once")
        if any(item.order_index < 1 for item in v):
            raise ValueError("Order index must be 1 or greater")
        return v

    def as_pairs(self) -> list[tuple[int, int]]:
        return [(item.id, item.order_index) for item in self.items]


# ==================== Assignments, groups & progress ====================


class AssignmentCreate(BaseModel):
    teacher_id: int


class AssignmentResponse(BaseModel):
    """Schema for a version with the users assigned to it."""

    version: VersionResponse
    teacher_ids: list[int]


class GroupCreate(BaseModel):
    """Schema for creating a course group."""

    name: str
    teacher_id: Optional[int] = None

    _name = field_validator("name")(_non_blank)


class GroupTeacherUpdate(BaseModel):
    teacher_id: Optional[int] = None


class GroupStudentCreate(BaseModel):
    student_id: int


class GroupResponse(BaseModel):
    """Schema for a course group with its enrolled students."""

    id: int
    course_version_id: int
    name: str
    teacher_id: Optional[int] = None
    student_ids: list[int] = []
    created_at: datetime
    updated_at: datetime


class ProgressResponse(BaseModel):
    """Schema for student progress response."""

    id: int
    student_id: int
    topic_id: int
    completed: bool
    completed_at: Optional[datetime] = None
    last_accessed_at: datetime

    class Config:
        from_attributes = True


class CompletionResponse(BaseModel):
    total_topics: int
    completed_topics: int
    percentage: float
