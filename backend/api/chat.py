"""
Chat API Endpoints

Natural-language operation -> bound ffmpeg command.
"""
from fastapi import APIRouter, Depends

from config.providers import load_provider_configs
from dependencies import get_chat_service, get_session_id
from schemas import ChatRequest
from services.chat_service import ChatService
from services.providers import configured_providers
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.post("/chat")
@handle_api_errors("Chat")
async def chat(
    body: ChatRequest,
    session_id: str = Depends(get_session_id),
    service: ChatService = Depends(get_chat_service),
):
    """Generate a command for the session's current input file"""
    return await service.generate_command(
        session_id=session_id,
        provider=body.provider,
        operation=body.operation,
        history=[message.dict() for message in body.conversation_history],
        region=body.pre_calculated_region,
        model=body.model,
    )


@router.get("/configured-providers")
def list_configured_providers():
    """Providers with credentials, plus a secret-free view of every config"""
    configs = load_provider_configs()
    return {
        "configured": configured_providers(configs),
        "providers": {name: config.safe_view() for name, config in configs.items()},
    }
