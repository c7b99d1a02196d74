"""HTTP ingestion endpoint.

Accepts raw MIME either as a Mailgun-style form post (``body-mime`` or
``message`` field) or as a raw ``message/rfc822`` request body, and feeds it
to the same pipeline entry point as the SMTP listener. No admission control
is applied on this path.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import UploadFile

from ...dependencies import AppServices, get_services
from ...domain.messages import ClientInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inbound", tags=["Inbound"])

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
MIME_FORM_FIELDS = ("body-mime", "message")


async def read_raw_mime(request: Request) -> bytes:
    """Extract raw MIME bytes from a form post or a raw body."""
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        for field_name in MIME_FORM_FIELDS:
            value = form.get(field_name)
            if isinstance(value, UploadFile):
                return await value.read()
            if value:
                return value.encode("utf-8")
        return b""

    return await request.body()


@router.post("/mime")
async def receive_mime(
    request: Request,
    services: AppServices = Depends(get_services),
):
    """Receive one raw message over HTTP.

    Returns:
        dict: {"status": "ok", "email_id": ..., "outcome": ...}

    Raises:
        HTTPException 400: No MIME content in the request
        HTTPException 503: Pipeline raised
    """
    raw = await read_raw_mime(request)
    if not raw.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No MIME content found (expected body-mime or message field, or a raw body)",
        )

    client = ClientInfo(
        remote_address=request.client.host if request.client else "unknown",
        hostname=request.headers.get("host"),
    )

    try:
        report = await services.pipeline.process(raw=raw, client=client, channel="http")
    except Exception as e:
        logger.error(
            f"Pipeline failed for HTTP inbound message: {e}",
            exc_info=True,
            extra={"origin": client.remote_address},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Temporary processing error, please retry",
        )

    return {
        "status": "ok",
        "email_id": report.email_id,
        "outcome": report.outcome,
    }
