from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from tripplanner.api.dependencies import get_chat_assistant
from tripplanner.core.chat_assistant import ChatAssistant
from tripplanner.core.schemas import ChatRequest

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("")
def chat(payload: ChatRequest, assistant: ChatAssistant = Depends(get_chat_assistant)) -> StreamingResponse:
    """Stream the assistant's reply as plain text."""
    return StreamingResponse(
        assistant.stream_reply(payload.messages, payload.itinerary),
        media_type="text/plain",
    )
