"""Submission review routes for classroom teachers."""

from typing import List

from fastapi import APIRouter, Response

from api.routes.assignment import build_download_response
from core.authorization import Action
from core.dependencies import (
    AssignmentManagerDep,
    AuthorizerDep,
    PrincipalDep,
    SubmissionManagerDep,
)
from models.assignment_file import AssignmentFileType
from models.submission import SubmissionModel
from schemas.assignment import MessageResponse
from schemas.submission import GradeSubmissionRequest, SubmissionDetail, SubmissionInfo
from utils.converters import file_to_info, to_utc_iso

router = APIRouter(prefix="/class", tags=["Submission"])


def _build_submission_info(model: SubmissionModel) -> SubmissionInfo:
    return SubmissionInfo(
        id=model.id,
        assignment_id=model.assignment_id,
        assignment_title=model.assignment.title,
        student_name=model.student.name,
        submitted_at=to_utc_iso(model.submitted_at),
        is_graded=model.is_graded,
        grade=model.grade,
    )


@router.get(
    "/{class_id}/submissions",
    response_model=List[SubmissionInfo],
    summary="List submissions",
)
def list_submissions(
    class_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    submission_manager: SubmissionManagerDep,
) -> List[SubmissionInfo]:
    """List every submission in the classroom, newest first."""
    authorizer.require(principal.subject, class_id, Action.MANAGE_SUBMISSIONS)
    return [
        _build_submission_info(model)
        for model in submission_manager.list_submissions(class_id)
    ]


@router.get(
    "/{class_id}/submissions/{submission_id}",
    response_model=SubmissionDetail,
    summary="Get submission",
)
def get_submission(
    class_id: int,
    submission_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    submission_manager: SubmissionManagerDep,
) -> SubmissionDetail:
    authorizer.require(principal.subject, class_id, Action.MANAGE_SUBMISSIONS)
    model = submission_manager.get_submission(class_id, submission_id)
    return SubmissionDetail(
        id=model.id,
        assignment_id=model.assignment_id,
        assignment_title=model.assignment.title,
        assignment_points=model.assignment.points,
        student_name=model.student.name,
        submitted_at=to_utc_iso(model.submitted_at),
        is_graded=model.is_graded,
        grade=model.grade,
        graded_at=to_utc_iso(model.graded_at),
        grader_name=model.grader.name if model.grader else None,
        files=[file_to_info(f) for f in submission_manager.list_submission_files(model)],
    )


@router.post(
    "/{class_id}/submissions/{submission_id}/grade",
    response_model=MessageResponse,
    summary="Grade submission",
)
def grade_submission(
    class_id: int,
    submission_id: int,
    req: GradeSubmissionRequest,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    submission_manager: SubmissionManagerDep,
) -> MessageResponse:
    """Grade a submission.

    Raises:
        InsufficientRoleError: If the caller is not a teacher of the classroom.
        NotFoundError: If the submission is not in this classroom.
    """
    authorizer.require(principal.subject, class_id, Action.MANAGE_SUBMISSIONS)
    submission_manager.grade(class_id, submission_id, principal.subject, req.grade)
    return MessageResponse(message="Submission graded successfully")


@router.put(
    "/{class_id}/submissions/{submission_id}/cancel-grade",
    response_model=MessageResponse,
    summary="Cancel grade",
)
def cancel_grade(
    class_id: int,
    submission_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    submission_manager: SubmissionManagerDep,
) -> MessageResponse:
    """Cancel a grade. This also clears the submission time."""
    authorizer.require(principal.subject, class_id, Action.MANAGE_SUBMISSIONS)
    submission_manager.cancel_grade(class_id, submission_id, principal.subject)
    return MessageResponse(message="Grade canceled successfully")


@router.get(
    "/{class_id}/download-submission-file/{file_id}",
    summary="Download a submission file",
)
def download_submission_file(
    class_id: int,
    file_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
) -> Response:
    authorizer.require(principal.subject, class_id, Action.DOWNLOAD_SUBMISSION_FILE)
    file = assignment_manager.get_class_file(
        class_id, file_id, file_type=AssignmentFileType.SUBMISSION
    )
    return build_download_response(file, submission_manager.read_file(file))
