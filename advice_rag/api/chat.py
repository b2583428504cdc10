"""
Chat endpoints: streamed answers, stored messages and feedback.
"""

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import StreamingResponse

from .schemas import ChatRequest, FeedbackRequest, MessageResponse
from ..core.errors import MessageNotFoundError
from ..util.logging import logger

router = APIRouter(prefix="/api/chat")

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def get_services(request: Request):
    """Services built at startup and shared by every request."""
    return request.app.state.services


@router.post("")
async def chat(request: ChatRequest, services=Depends(get_services)):
    """
    Answer a query as a stream of newline-delimited JSON events.

    Events arrive as init, content*, then one complete or error event.
    When the client disconnects the generator is closed, which stops
    the model stream.
    """
    message = services.store.create_message(request.query)

    async def event_stream():
        events = services.pipeline.run(message)
        logger.log_stream_event(message.id, "opened")
        sent = 0
        try:
            async for event in events:
                sent += 1
                yield event.to_ndjson()
        finally:
            await events.aclose()
            logger.log_stream_event(message.id, "closed", {"events": sent})

    return StreamingResponse(event_stream(), media_type=NDJSON_MEDIA_TYPE)


@router.get("/{message_id}", response_model=MessageResponse)
def get_message(message_id: int, services=Depends(get_services)):
    """Get one stored message."""
    message = services.store.get_message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return MessageResponse(**message.to_dict())


@router.post("/{message_id}/feedback", response_model=MessageResponse)
def submit_feedback(message_id: int, request: FeedbackRequest, services=Depends(get_services)):
    """Record thumbs up/down and optional free-text feedback."""
    try:
        message = services.store.set_feedback(message_id, request.thumbs_up, request.feedback)
    except MessageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(**message.to_dict())
