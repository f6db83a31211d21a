"""AI helper endpoints: explanations, image analysis and chat."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from lesson_ai_system.schemas.ai import ExplanationRequest, ImageAnalysisRequest
from lesson_ai_system.schemas.chat import ChatRequest

from ..dependencies import AppContainer, get_container, get_current_user_id

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/explain")
async def explain(
    request: ExplanationRequest,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    response = await container.orchestrator.explain(request.query, request.context)
    return {
        "status": "success",
        "explanation": response.data,
        "model": response.model,
        "cached": response.cached,
    }


@router.post("/analyze-image")
async def analyze_image(
    request: ImageAnalysisRequest,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    response = await container.orchestrator.analyze_image(request.image_url, request.prompt)
    return {"status": "success", "analysis": response.data.to_wire(), "model": response.model}


@router.post("/chat")
async def chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Answer a learner's chat message."""
    if request.context.user_id is None:
        request = request.model_copy(
            update={"context": request.context.model_copy(update={"user_id": user_id})}
        )
    reply = await container.chat_service.reply(request)
    return {"status": "success", **reply.to_wire()}


@router.get("/health")
async def ai_health(container: AppContainer = Depends(get_container)) -> Dict[str, Any]:
    """Which AI backends this server can reach."""
    return {
        "status": "success",
        "providers": container.registry.names(),
        "chat": {
            "available": container.chat_service.available,
            "openrouter": container.chat_service.openrouter is not None,
            "groq": container.chat_service.groq is not None,
        },
        "routing": container.router.describe(),
    }
