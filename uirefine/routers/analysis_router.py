from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from typing import Optional
import logging

from ..application.services.analysis_service import AnalysisService
from ..core.config import settings
from ..exceptions import EncodingError, create_success_response
from ..media_utils import BinaryBlob, read_upload, verify_image
from ..schemas.analysis.analysis import record_to_dict
from ..schemas.common.common import ErrorResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyses", tags=["Analysis"])

_error_responses = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


async def _read_screenshot(upload: UploadFile) -> BinaryBlob:
    if upload.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail="Invalid file type. Please upload PNG, JPG, WEBP or GIF.")

    upload.file.seek(0, 2)
    file_size = upload.file.tell()
    upload.file.seek(0)
    if file_size > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"Screenshot file size should not exceed {settings.MAX_FILE_SIZE // (1024*1024)}MB.",
        )

    blob = await read_upload(upload)
    try:
        detected_type = verify_image(blob)
    except EncodingError as e:
        logger.warning(f"Rejected screenshot {upload.filename}: {e.message}")
        raise HTTPException(status_code=415, detail=e.message)
    if detected_type not in settings.ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail=f"File type {detected_type} not allowed")
    return BinaryBlob(data=blob.data, mime_type=detected_type, filename=blob.filename)


@router.get("")
def list_analyses(service: AnalysisService = Depends(get_analysis_service)):
    return create_success_response([record_to_dict(r) for r in service.list_records()])


@router.post("", status_code=201)
async def create_analysis(
    screen_name: str = Form(...),
    screenshot: UploadFile = File(...),
    url: str = Form(""),
    code_snippet: Optional[str] = Form(None),
    code_language: Optional[str] = Form(None),
    service: AnalysisService = Depends(get_analysis_service),
):
    if not screen_name.strip():
        raise HTTPException(status_code=400, detail="Screen Name is required.")
    blob = await _read_screenshot(screenshot)
    record = service.create_record(
        screen_name=screen_name,
        screenshot=blob,
        url=url,
        code_snippet=code_snippet,
        code_language=code_language,
    )
    return create_success_response(record_to_dict(record))


@router.get("/{analysis_id}", responses=_error_responses)
def get_analysis(analysis_id: str, service: AnalysisService = Depends(get_analysis_service)):
    return create_success_response(record_to_dict(service.get_record(analysis_id)))


@router.post("/{analysis_id}/analyze", responses=_error_responses)
async def analyze(analysis_id: str, service: AnalysisService = Depends(get_analysis_service)):
    record = await service.begin_analysis(analysis_id)
    return create_success_response(record_to_dict(record))


@router.delete("/{analysis_id}", responses=_error_responses)
def delete_analysis(analysis_id: str, service: AnalysisService = Depends(get_analysis_service)):
    service.delete_record(analysis_id)
    return create_success_response(MessageResponse(message="Analysis deleted").model_dump())


@router.delete("")
def clear_analyses(service: AnalysisService = Depends(get_analysis_service)):
    service.clear_records()
    return create_success_response(MessageResponse(message="All analyses deleted").model_dump())
