from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Dict, Optional
import logging

from ..errors import ContentError, ValidationError
from ..services.content_service import ContentService
from ..services.publisher import redact


router = APIRouter()
logger = logging.getLogger(__name__)


class ContentUpdateRequest(BaseModel):
    section: Optional[str] = None
    content: Optional[Dict[str, Any]] = None


def get_content_service(request: Request) -> ContentService:
    return request.app.state.content_service


def error_response(message: str, exc: Exception, service: ContentService | None = None, **context) -> JSONResponse:
    secrets = service.settings.secrets if service else []
    if isinstance(exc, ContentError):
        status_code = exc.status_code
        error = redact(exc.message, secrets)
        details = dict(exc.details)
        if isinstance(exc, ValidationError):
            message = error
            logger.warning("request_invalid error=%s context=%s", error, context)
        else:
            logger.error("request_failed kind=%s error=%s context=%s", type(exc).__name__, error, context)
    else:
        status_code = 500
        error = redact(str(exc), secrets)
        details = {}
        logger.exception("request_failed_unexpected error=%s context=%s", error, context)
    payload = {
        "success": False,
        "message": message,
        "error": error,
        "staged": bool(details.pop("staged", False)),
        **details,
    }
    return JSONResponse(status_code=status_code, content=payload)


@router.post("/api/update-content")
def update_content(
    body: ContentUpdateRequest,
    service: ContentService = Depends(get_content_service),
):
    try:
        if not body.section:
            raise ValidationError("Missing required field: section")
        if body.content is None:
            raise ValidationError("Missing required field: content")
        data = service.update_content(body.section, body.content)
    except Exception as exc:
        return error_response("Error updating content", exc, service, section=body.section, op="update-content")
    return {"success": True, **data}


@router.post("/api/upload-image")
def upload_image(
    image: Optional[UploadFile] = File(None),
    section: Optional[str] = Form(None),
    service: ContentService = Depends(get_content_service),
):
    try:
        if image is None or not image.filename:
            raise ValidationError("No file uploaded")
        # at most one byte past the cap
        content = image.file.read(service.settings.MAX_UPLOAD_MB * 1024 * 1024 + 1)
        data = service.upload_image(content, image.filename, section or None)
    except Exception as exc:
        return error_response("Error uploading image", exc, service, section=section, op="upload-image")
    return {"success": True, **data}
