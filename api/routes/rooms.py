"""房间与历史消息相关路由。"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query

from application.dto import MessagePageDTO, RoomDTO
from application.services.chat_coordinator import ChatCoordinator
from api.dependencies import get_chat_coordinator
from core.config import settings
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/rooms",
    tags=["Rooms"],
)


@router.get(
    "",
    summary="房间列表",
    response_model=ApiResponse[list[RoomDTO]],
)
async def list_rooms(chat: ChatCoordinator = Depends(get_chat_coordinator)):
    return success_response(data=chat.list_rooms())


@router.get(
    "/{room}/messages",
    summary="房间历史消息（分页，旧消息在前）",
    response_model=ApiResponse[MessagePageDTO],
)
async def read_room_messages(
    room: str = Path(..., min_length=1),
    page: int = Query(0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    chat: ChatCoordinator = Depends(get_chat_coordinator),
):
    data = await chat.read_page(room, page, limit)
    return success_response(data=data)
