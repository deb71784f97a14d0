"""Inspection endpoints under ``/api/inspections``."""

from __future__ import annotations

import json
from urllib.parse import quote
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from inspection_api.dependencies import get_actor, get_workflow
from inspection_api.schemas import (
    DecisionRequest,
    DeletionOut,
    ErrorResponse,
    InspectionCreate,
    InspectionListItem,
    InspectionOut,
    InspectionUpdate,
    PhotoOut,
    TransitionOut,
)
from inspection_kernel.domain.authorization import ActorContext
from inspection_kernel.domain.inspection import InspectionStatus
from inspection_kernel.domain.projections import ascii_filename
from inspection_kernel.services.inspection_service import UNSET
from inspection_services.workflow import (
    DeletionOutcome,
    InspectionWorkflow,
    PhotoUpload,
    SignatureUpload,
)

router = APIRouter(
    prefix="/api/inspections",
    tags=["inspections"],
    responses={
        code: {"model": ErrorResponse}
        for code in (403, 404, 409, 422, 502)
    },
)


def content_disposition(filename: str) -> str:
    """ASCII ``filename`` plus the RFC 5987 UTF-8 ``filename*`` form."""
    return (
        f'attachment; filename="{ascii_filename(filename)}"; '
        f"filename*=UTF-8''{quote(filename, safe='')}"
    )


def _deletion_response(outcome: DeletionOutcome):
    body = DeletionOut.model_validate(outcome)
    if outcome.is_complete:
        return body
    return JSONResponse(
        status_code=status.HTTP_207_MULTI_STATUS,
        content=body.model_dump(mode="json"),
    )


# ============================================================================
# COLLECTION
# ============================================================================


@router.post("", response_model=TransitionOut, status_code=status.HTTP_201_CREATED)
async def create_inspection(
    request: Request,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    """
    Multipart create: a JSON ``payload`` field plus one file per photo,
    each named by its photo type (``FRONT``, ``REAR``, ...), and the
    inspector's ``signature`` image.
    """
    form = await request.form()
    raw = form.get("payload")
    if not isinstance(raw, str):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Missing 'payload' form field",
        )
    try:
        payload = InspectionCreate.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid payload: {e}",
        )

    photos = []
    signature = None
    for name, value in form.multi_items():
        if name == "payload" or isinstance(value, str):
            continue
        if name == "signature":
            signature = SignatureUpload(await value.read(), value.content_type)
            continue
        photos.append(PhotoUpload(
            photo_type=name,
            content=await value.read(),
            content_type=value.content_type,
        ))

    result = await run_in_threadpool(
        workflow.create_inspection,
        actor,
        payload.vehicle_id,
        payload.mileage,
        payload.checklist,
        payload.observations,
        photos,
        payload.submit,
        signature,
    )
    return TransitionOut.model_validate(result)


@router.get("", response_model=list[InspectionListItem])
def list_inspections(
    status_filter: InspectionStatus | None = Query(None, alias="status"),
    vehicle_id: UUID | None = None,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    summaries = workflow.list_inspections(actor, status_filter, vehicle_id)
    return [InspectionListItem.model_validate(s) for s in summaries]


# ============================================================================
# SINGLE INSPECTION
# ============================================================================


@router.get("/{inspection_id}", response_model=InspectionOut)
def get_inspection(
    inspection_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    return InspectionOut.model_validate(workflow.get_inspection(actor, inspection_id))


@router.put("/{inspection_id}", response_model=InspectionOut)
def update_inspection(
    inspection_id: UUID,
    body: InspectionUpdate,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    observations = (
        body.observations if "observations" in body.model_fields_set else UNSET
    )
    detail = workflow.update_inspection(
        actor,
        inspection_id,
        mileage=body.mileage,
        checklist=body.checklist,
        observations=observations,
    )
    return InspectionOut.model_validate(detail)


@router.delete("/{inspection_id}", response_model=DeletionOut)
def delete_inspection(
    inspection_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    """207 when the rows are gone but some remote photos could not be deleted."""
    return _deletion_response(workflow.delete_inspection(actor, inspection_id))


# ============================================================================
# TRANSITIONS
# ============================================================================


@router.post("/{inspection_id}/submit", response_model=TransitionOut)
def submit_inspection(
    inspection_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    return TransitionOut.model_validate(workflow.submit_inspection(actor, inspection_id))


@router.post("/{inspection_id}/resubmit", response_model=TransitionOut)
def resubmit_inspection(
    inspection_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    return TransitionOut.model_validate(
        workflow.resubmit_inspection(actor, inspection_id)
    )


@router.post("/{inspection_id}/approve", response_model=TransitionOut)
def decide_inspection(
    inspection_id: UUID,
    body: DecisionRequest,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    """Approve (``approved: true``) or reject with ``comments``."""
    result = workflow.decide(actor, inspection_id, body.approved, body.comments)
    return TransitionOut.model_validate(result)


# ============================================================================
# PHOTOS
# ============================================================================


@router.post(
    "/{inspection_id}/photos",
    response_model=PhotoOut,
    status_code=status.HTTP_201_CREATED,
)
def add_photo(
    inspection_id: UUID,
    photo_type: str = Form(...),
    file: UploadFile = File(...),
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    upload = PhotoUpload(
        photo_type=photo_type,
        content=file.file.read(),
        content_type=file.content_type,
    )
    return PhotoOut.model_validate(workflow.add_photo(actor, inspection_id, upload))


@router.delete("/{inspection_id}/photos/{photo_id}", response_model=DeletionOut)
def delete_photo(
    inspection_id: UUID,
    photo_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    return _deletion_response(workflow.delete_photo(actor, inspection_id, photo_id))


@router.put("/{inspection_id}/signature", response_model=InspectionOut)
def sign_inspection(
    inspection_id: UUID,
    file: UploadFile = File(...),
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    upload = SignatureUpload(content=file.file.read(), content_type=file.content_type)
    return InspectionOut.model_validate(
        workflow.sign_inspection(actor, inspection_id, upload)
    )


# ============================================================================
# EXPORT
# ============================================================================


@router.get("/{inspection_id}/pdf")
def export_pdf(
    inspection_id: UUID,
    actor: ActorContext = Depends(get_actor),
    workflow: InspectionWorkflow = Depends(get_workflow),
):
    export = workflow.export_pdf(actor, inspection_id)
    return Response(
        content=export.content,
        media_type=export.content_type,
        headers={"Content-Disposition": content_disposition(export.filename)},
    )
