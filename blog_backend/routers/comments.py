from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.auth import Caller, get_caller, require_caller
from blog_backend.database import get_db
from blog_backend.outcomes import unwrap
from blog_backend.schemas import CommentCreate, CommentResponse, CommentUpdate, Envelope
from blog_backend.services import comment_service

router = APIRouter(tags=["comments"])


@router.get("/articles/{article_id}/comments", response_model=Envelope[list[CommentResponse]])
async def list_comments(
    article_id: int,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.get_comments(db, caller, article_id)
    return Envelope(success=True, data=unwrap(result))


@router.post("/articles/{article_id}/comments", status_code=201, response_model=Envelope[CommentResponse])
async def create_comment(
    article_id: int,
    data: CommentCreate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.create_comment(db, caller, article_id, data)
    return Envelope(success=True, data=unwrap(result))


@router.put("/comments/{comment_id}", response_model=Envelope[CommentResponse])
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.update_comment(db, caller, comment_id, data)
    return Envelope(success=True, data=unwrap(result))


@router.delete("/comments/{comment_id}", response_model=Envelope[None])
async def soft_delete_comment(
    comment_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    unwrap(await comment_service.soft_delete_comment(db, caller, comment_id))
    return Envelope(success=True)


@router.delete("/comments/{comment_id}/permanent", response_model=Envelope[None])
async def hard_delete_comment(
    comment_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    unwrap(await comment_service.hard_delete_comment(db, caller, comment_id))
    return Envelope(success=True)
