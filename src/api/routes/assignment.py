"""Assignment routes: creation, detail, materials, submissions by students."""

import re
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Response, UploadFile

from core.authorization import Action
from core.dependencies import (
    AssignmentManagerDep,
    AuthorizerDep,
    ClassManagerDep,
    PrincipalDep,
    SubmissionManagerDep,
)
from models.assignment_file import AssignmentFileModel, AssignmentFileType
from schemas.assignment import (
    AssignmentDetail,
    CreateAssignmentRequest,
    CreateAssignmentResponse,
    MessageResponse,
    UploadResponse,
)
from utils.converters import DEFAULT_CONTENT_TYPE, file_to_info, to_utc_iso
from utils.submission_manager import IncomingFile, SubmissionState, submission_state

router = APIRouter(prefix="/class", tags=["Assignment"])

# Anything a quoted header parameter cannot carry verbatim
HEADER_UNSAFE = re.compile(r'[^\x20-\x7e]|["\\]')


def incoming_files(files: Optional[List[UploadFile]]) -> List[IncomingFile]:
    """Wrap uploads without reading them; the blob store copies each stream."""
    incoming = []
    for upload in files or []:
        incoming.append(
            IncomingFile(
                file_name=upload.filename or "unknown",
                content_type=upload.content_type,
                stream=upload.file,
            )
        )
    return incoming


def build_download_response(file: AssignmentFileModel, data: bytes) -> Response:
    """Binary response carrying the stored content type and original filename."""
    ascii_name = HEADER_UNSAFE.sub("_", file.file_name)
    disposition = (
        f'attachment; filename="{ascii_name}"; '
        f"filename*=UTF-8''{quote(file.file_name)}"
    )
    return Response(
        content=data,
        media_type=file.content_type or DEFAULT_CONTENT_TYPE,
        headers={"Content-Disposition": disposition},
    )


@router.post(
    "/{class_id}/create-assignment",
    response_model=CreateAssignmentResponse,
    summary="Create assignment",
)
def create_assignment(
    class_id: int,
    req: CreateAssignmentRequest,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
) -> CreateAssignmentResponse:
    """Create an assignment in a classroom the caller teaches.

    Raises:
        InsufficientRoleError: If the caller is not a teacher of the classroom.
        ValidationError: If the due date is not YYYY-MM-DDTHH:MM.
    """
    authorizer.require(principal.subject, class_id, Action.CREATE_ASSIGNMENT)
    model = assignment_manager.create_assignment(
        class_id=class_id,
        creator_id=principal.subject,
        title=req.title,
        description=req.description,
        due_date=req.due_date,
        points=req.points,
    )
    return CreateAssignmentResponse(id=model.id)


@router.get(
    "/{class_id}/assignment/{assignment_id}",
    response_model=AssignmentDetail,
    summary="Get assignment",
)
def get_assignment(
    class_id: int,
    assignment_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    class_manager: ClassManagerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
) -> AssignmentDetail:
    """Get an assignment with its materials and the caller's own submission state."""
    authorizer.require(principal.subject, class_id, Action.READ_ASSIGNMENT)
    classroom = class_manager.get_class(class_id)
    assignment = assignment_manager.get_assignment(class_id, assignment_id)
    submission = submission_manager.get_student_submission(assignment.id, principal.subject)
    state = submission_state(submission)
    is_submitted = state != SubmissionState.NO_SUBMISSION

    return AssignmentDetail(
        id=assignment.id,
        class_id=classroom.id,
        title=assignment.title,
        class_title=classroom.name,
        description=assignment.description or "",
        due_date=to_utc_iso(assignment.due_date),
        points=assignment.points,
        materials=[file_to_info(f) for f in assignment_manager.list_materials(assignment.id)],
        submission_files=[
            file_to_info(f)
            for f in assignment_manager.list_submission_files(assignment.id, principal.subject)
        ],
        is_submitted=is_submitted,
        grade=submission.grade if state == SubmissionState.GRADED else None,
    )


@router.post(
    "/{class_id}/assignment/{assignment_id}/add-materials",
    response_model=UploadResponse,
    summary="Upload assignment materials",
)
def add_materials(
    class_id: int,
    assignment_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
    files: Optional[List[UploadFile]] = File(None),
) -> UploadResponse:
    authorizer.require(principal.subject, class_id, Action.ADD_MATERIALS)
    assignment = assignment_manager.get_assignment(class_id, assignment_id)
    rows = submission_manager.add_materials(assignment, principal.subject, incoming_files(files))
    return UploadResponse(
        message="Assignment materials saved successfully",
        files=[file_to_info(row) for row in rows],
    )


@router.post(
    "/{class_id}/assignment/{assignment_id}/submit",
    response_model=UploadResponse,
    summary="Submit or resubmit work",
)
def submit(
    class_id: int,
    assignment_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
    files: Optional[List[UploadFile]] = File(None),
) -> UploadResponse:
    """Submit files for an assignment.

    Files from earlier submissions are kept; resubmitting only refreshes the
    submission time.
    """
    authorizer.require(principal.subject, class_id, Action.SUBMIT)
    assignment = assignment_manager.get_assignment(class_id, assignment_id)
    submission_manager.submit(assignment, principal.subject, incoming_files(files))
    return UploadResponse(
        message="Submission saved successfully",
        files=[
            file_to_info(f)
            for f in assignment_manager.list_submission_files(assignment.id, principal.subject)
        ],
    )


@router.delete(
    "/{class_id}/assignment/{assignment_id}/delete-file/{file_id}",
    response_model=MessageResponse,
    summary="Delete an uploaded file",
)
def delete_file(
    class_id: int,
    assignment_id: int,
    file_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
) -> MessageResponse:
    """Delete a file. Uploaders may delete their own files; teachers may delete any."""
    allow = authorizer.require(principal.subject, class_id, Action.DELETE_FILE)
    file = assignment_manager.get_class_file(class_id, file_id, assignment_id=assignment_id)
    submission_manager.delete_file(
        file,
        requester_id=principal.subject,
        requester_is_teacher=allow.is_teacher,
    )
    return MessageResponse(message="File deleted successfully")


@router.delete(
    "/{class_id}/assignment/{assignment_id}/cancel-submission",
    response_model=MessageResponse,
    summary="Cancel my submission",
)
def cancel_submission(
    class_id: int,
    assignment_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
) -> MessageResponse:
    authorizer.require(principal.subject, class_id, Action.SUBMIT)
    assignment = assignment_manager.get_assignment(class_id, assignment_id)
    submission_manager.cancel_submission(assignment.id, principal.subject)
    return MessageResponse(message="Submission was canceled")


@router.get(
    "/{class_id}/download-material-file/{file_id}",
    summary="Download a material file",
)
def download_material_file(
    class_id: int,
    file_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    assignment_manager: AssignmentManagerDep,
    submission_manager: SubmissionManagerDep,
) -> Response:
    authorizer.require(principal.subject, class_id, Action.DOWNLOAD_MATERIAL)
    file = assignment_manager.get_class_file(
        class_id, file_id, file_type=AssignmentFileType.MATERIAL
    )
    return build_download_response(file, submission_manager.read_file(file))
