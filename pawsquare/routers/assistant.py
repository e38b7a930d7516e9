"""HTTP endpoint proxying the pet care assistant to the AI gateway."""
from __future__ import annotations

import logging
from time import perf_counter

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import ASSISTANT_FUNCTION_PATH
from ..database import get_session
from ..schemas import AssistantChatRequest, AssistantErrorResponse
from ..services import (
    AIGatewayClient,
    enforce_rate_limit,
    get_current_user_id,
    get_gateway_client,
    record_usage,
)

router = APIRouter(tags=["assistant"])
logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    code: {"model": AssistantErrorResponse}
    for code in (401, 402, 429, 500)
}


@router.post(
    ASSISTANT_FUNCTION_PATH,
    response_class=StreamingResponse,
    responses=_ERROR_RESPONSES,
)
async def pet_care_assistant(
    payload: AssistantChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
    gateway: AIGatewayClient = Depends(get_gateway_client),
) -> StreamingResponse:
    """Stream the assistant's reply as Server-Sent Events."""

    start = perf_counter()
    enforce_rate_limit(db, user_id, limit=get_settings().rate_limit_per_hour)
    record_usage(db, user_id)

    messages = [message.model_dump() for message in payload.messages]
    stream = await gateway.open_stream(messages)
    logger.info(
        "Assistant stream start | user=%s messages=%s latency_ms=%.1f",
        user_id,
        len(messages),
        (perf_counter() - start) * 1000,
    )

    async def _instrumented_stream():
        chunk_count = 0
        try:
            async for chunk in stream:
                chunk_count += 1
                yield chunk
        finally:
            logger.info(
                "Assistant stream finished | user=%s chunks=%s duration_ms=%.1f",
                user_id,
                chunk_count,
                (perf_counter() - start) * 1000,
            )

    return StreamingResponse(_instrumented_stream(), media_type="text/event-stream")


__all__ = ["router"]
