"""
FastAPI router for system prompt management.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from callrelay.shared.exceptions import PromptValidationError
from callrelay.shared.logging import get_logger
from callrelay.voice.prompts import PromptStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["prompt"])


class PromptUpdate(BaseModel):
    prompt: str | None = None


def get_prompt_store(request: Request) -> PromptStore:
    return request.app.state.prompt_store


@router.get("/prompt")
async def read_prompt(store: Annotated[PromptStore, Depends(get_prompt_store)]) -> dict[str, str]:
    return {"prompt": await store.get()}


@router.post("/prompt")
async def update_prompt(
    body: PromptUpdate,
    store: Annotated[PromptStore, Depends(get_prompt_store)],
) -> Any:
    try:
        await store.save(body.prompt)
    except PromptValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(e)},
        )
    except OSError as e:
        logger.exception("Error saving prompt")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to save prompt", "details": str(e)},
        )
    return {"success": True}
