"""
SAP Server — Generation Routes
Tracked AI completions proxied through OpenRouter.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from sap_server.core.dependencies import get_aggregate_store
from sap_server.schemas.schemas import GenerateRequest, GenerateResponse
from sap_server.services.aggregate import AggregateStore
from sap_server.services.completion import CompletionError, generate_completion
from sap_server.services.tracking import track_prompt
from sap_server.utils.carbon import estimate_tokens

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Generate an AI response",
    description="Track the prompt, then forward it to the completion API.",
)
async def generate(
    request: GenerateRequest,
    store: AggregateStore = Depends(get_aggregate_store),
):
    try:
        await track_prompt(
            store,
            prompt=request.prompt,
            model=request.model,
            tokens=estimate_tokens(request.prompt),
            user_id=request.user_id,
        )
        completion = await generate_completion(request.prompt, request.model)
    except CompletionError as e:
        logger.error(f"Completion failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate response",
        )
    except Exception as e:
        logger.error(f"AI generation error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate AI response",
        )

    logger.info(f"Generated response for user {request.user_id} with {completion.model}")
    return GenerateResponse(response=completion.content, usage=completion.usage)
