"""
Bot Routes

Public bot endpoint. No authentication: the bot talks to end customers
through the web widget and messaging channels.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from chatbot_core.core.config.constants import Channel
from chatbot_core.core.logging import get_logger
from chatbot_core.services import ChatService

router = APIRouter(prefix="/api/bot", tags=["Bot"])
logger = get_logger(__name__)


class BotMessageRequest(BaseModel):
    """Inbound bot message."""
    # Emptiness is checked by the service so it maps to 400, not 422
    message: str = Field(default="", max_length=4000, description="Customer message")
    session_id: str | None = Field(default=None, description="Conversation session")
    user_identifier: str | None = Field(default=None, description="Phone, handle or email")
    channel: Channel = Field(default=Channel.WEB, description="Channel the message arrived from")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Hola, ¿cuánto cuesta la remera azul?",
                "session_id": "sess-42",
                "channel": "whatsapp",
            }
        }
    }


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


@router.post("/{tenant_id}")
async def post_message(
    tenant_id: str,
    body: BotMessageRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Answer one customer message.

    Errors are raised as ChatbotError subclasses and mapped to status codes
    by the application's exception handler.
    """
    logger.info(
        "Bot message received",
        tenant_id=tenant_id,
        channel=body.channel.value,
        session_id=body.session_id,
    )

    reply = await chat_service.respond(tenant_id, body.message.strip())

    headers = reply.rate_limit.headers() if reply.rate_limit else {}
    return JSONResponse(
        content={
            "success": True,
            "message": reply.message,
            # Legacy widget clients read this field
            "bot_response": reply.message,
            "provider": reply.provider,
            "intent_detected": reply.intent.value,
            "tokens_used": reply.tokens_used,
        },
        headers=headers,
    )


@router.get("/{tenant_id}")
async def bot_status(tenant_id: str):
    """Liveness check for one tenant's bot."""
    return {
        "status": "ok",
        "tenant_id": tenant_id,
        "message": "Bot activo y listo para recibir mensajes",
    }
