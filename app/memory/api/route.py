from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.core.exceptions import ChatAppError
from app.core.logger import get_logger
from app.memory.api.dto import CreateMemoryDTO, UpdateMemoryDTO, memory_payload
from app.memory.service.memory_service import MemoryService

memory_router = APIRouter(prefix="/memory", tags=["Memory"])
logger = get_logger("MemoryRouter")


def get_memory_service(request: Request) -> Optional[MemoryService]:
    return getattr(request.app.state, "memory_service", None)


def _require(memory_service: Optional[MemoryService]) -> MemoryService:
    if not memory_service:
        raise HTTPException(status_code=503, detail="Memory service not available")
    return memory_service


@memory_router.get("", response_model=BaseResponse)
async def list_memories(
    current_user: dict = Depends(get_current_user),
    memory_service: Optional[MemoryService] = Depends(get_memory_service),
):
    memory_service = _require(memory_service)
    try:
        entries = await memory_service.list_memories(current_user["user_id"])
        return BaseResponse(
            status=True,
            message="Memories fetched successfully",
            data={"memories": [memory_payload(e) for e in entries]},
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Memory fetch error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch memories")


@memory_router.post("", response_model=BaseResponse)
async def create_memory(
    body: CreateMemoryDTO,
    current_user: dict = Depends(get_current_user),
    memory_service: Optional[MemoryService] = Depends(get_memory_service),
):
    memory_service = _require(memory_service)
    try:
        entry = await memory_service.add_memory(current_user["user_id"], body.key, body.value)
        return BaseResponse(status=True, message="Memory created successfully", data=memory_payload(entry))
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Memory creation error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create memory")


@memory_router.patch("/{memory_id}", response_model=BaseResponse)
async def update_memory(
    memory_id: str,
    body: UpdateMemoryDTO,
    current_user: dict = Depends(get_current_user),
    memory_service: Optional[MemoryService] = Depends(get_memory_service),
):
    memory_service = _require(memory_service)
    try:
        entry = await memory_service.update_memory(current_user["user_id"], memory_id, body.value, key=body.key)
        return BaseResponse(status=True, message="Memory updated successfully", data=memory_payload(entry))
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Memory update error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update memory")


@memory_router.delete("/{memory_id}", response_model=BaseResponse)
async def delete_memory(
    memory_id: str,
    current_user: dict = Depends(get_current_user),
    memory_service: Optional[MemoryService] = Depends(get_memory_service),
):
    memory_service = _require(memory_service)
    try:
        await memory_service.delete_memory(current_user["user_id"], memory_id)
        return BaseResponse(status=True, message="Memory deleted successfully", data={"id": memory_id})
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Memory deletion error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete memory")
