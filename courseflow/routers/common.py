"""Helpers shared by the API routers."""
from fastapi import HTTPException, status

from courseflow.branches import BranchSummary
from courseflow.courses import CourseView
from courseflow.results import Result
from courseflow.schemas import BranchResponse, CourseResponse, MergeRequestResponse, VersionResponse

ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "constraint_violation": status.HTTP_409_CONFLICT,
    "concurrent_modification": status.HTTP_409_CONFLICT,
}


def unwrap(result: Result):
    """Return the value of a successful result, raise an HTTP error otherwise."""
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"error": result.error.kind, "message": result.message},
    )


def branch_response(summary: BranchSummary) -> BranchResponse:
    response = BranchResponse.model_validate(summary.branch)
    if summary.tip_version is not None:
        response.tip_version = VersionResponse.model_validate(summary.tip_version)
    if summary.base_version is not None:
        response.base_version = VersionResponse.model_validate(summary.base_version)
    return response


def course_response(view: CourseView) -> CourseResponse:
    course = view.course
    return CourseResponse(
        id=course.id,
        title=course.title,
        summary=course.summary,
        description=course.description,
        visibility_override=view.visibility_override,
        visible_for_students=view.visible_for_students,
        active_version_id=course.active_version_id,
        default_branch_id=course.default_branch_id,
        created_by=course.created_by,
        created_at=course.created_at,
        updated_at=course.updated_at,
        primary_version=(
            VersionResponse.model_validate(view.primary_version) if view.primary_version else None
        ),
        branches=[branch_response(summary) for summary in view.branches],
        pending_merge_requests=[
            MergeRequestResponse.model_validate(request) for request in view.pending_merge_requests
        ],
    )
