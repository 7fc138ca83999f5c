from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse, Response

from ..middleware.error_handler import error_response
from ..services.storage_service import Stores, get_stores
from ..utils.auth import get_api_key_header
from .multipart import JSON_MEDIA_TYPE, ZIP_MEDIA_TYPE
from .pipeline import IngestionContext, ingest_submission

router = APIRouter(tags=["Submissions"])


@router.post(
    "/challenges/{id}/submissions",
    summary="Upload a submission",
    response_class=JSONResponse,
)
async def upload_submission(
    request: Request,
    id: str = Path(..., description="Challenge identifier."),
    stores: Stores = Depends(get_stores),
) -> Response:
    ctx = IngestionContext(
        challenge_id=id,
        api_key=get_api_key_header(request.headers),
        content_type=request.headers.get("content-type"),
        body=request.stream(),
        challenges=stores.challenges,
        users=stores.users,
        submissions=stores.submissions,
    )
    outcome = await ingest_submission(ctx)
    if outcome.failed:
        return error_response(outcome.error)
    return Response(content=outcome.value, media_type=JSON_MEDIA_TYPE)


@router.get(
    "/submissions/{id}/download",
    summary="Download a submission's code archive",
    response_class=Response,
)
async def download_submission(
    id: str = Path(..., description="Submission identifier."),
    stores: Stores = Depends(get_stores),
) -> Response:
    # NotFound and StorageFailure are rendered by the SubmissionError handler
    submission = await stores.submissions.find(id)
    return Response(
        content=submission.data,
        media_type=ZIP_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=code.zip"},
    )
