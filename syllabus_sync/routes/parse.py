"""
Parse API Routes
HTTP endpoint that turns syllabus text into calendar-ready events.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.middleware.rate_limit_dependencies import client_ip, rate_limit_ip
from syllabus_sync.models.api.parse_request import ParseRequest
from syllabus_sync.models.api.parse_response import ParseResponse
from syllabus_sync.services.llm_extraction_service import LLMExtractionError
from syllabus_sync.services.syllabus_parse_service import (
    CourseCodeNotFoundError,
    syllabus_parse_service,
)

logger = get_logger(__name__)

router = APIRouter(tags=["parse"])


async def require_json(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type.lower():
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail={"error": "Content-Type must be application/json"},
        )


@router.post(
    "/parse",
    response_model=ParseResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_ip), Depends(require_json)],
)
async def parse_syllabus(body: ParseRequest, request: Request):
    """Extract events from syllabus text (LLM when available, heuristics otherwise)."""
    if len(body.text) > settings.MAX_TEXT_CHARS:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "error": "Text too long",
                "max_chars": settings.MAX_TEXT_CHARS,
                "received_chars": len(body.text),
            },
        )

    try:
        return await syllabus_parse_service.parse(body, client_ip(request))

    except CourseCodeNotFoundError as e:
        logger.info("Course code not found", text_length=len(body.text))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": str(e), "code": e.code, "retryable": False},
        )
    except LLMExtractionError as e:
        logger.error(
            "LLM parsing failed",
            code=e.code,
            recoverable=e.recoverable,
            upstream_status=e.status_code,
            error=str(e),
        )
        raise HTTPException(
            status_code=e.http_status,
            detail={"error": "LLM parsing failed", "code": e.code, "retryable": e.recoverable},
        )
    except Exception as e:
        logger.error("Unexpected parse failure", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Parsing failed"},
        )
