from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.auth import Caller, get_caller, require_caller
from blog_backend.database import get_db
from blog_backend.dependencies import ArticleListParams
from blog_backend.outcomes import unwrap
from blog_backend.schemas import (
    ArticleCreate,
    ArticlePage,
    ArticleResponse,
    ArticleTagsUpdate,
    ArticleUpdate,
    Envelope,
)
from blog_backend.services import article_service
from blog_backend.storage import FileStorage, get_file_storage

router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("", response_model=Envelope[ArticlePage])
async def list_articles(
    params: ArticleListParams = Depends(),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.list_articles(
        db, caller, params.filters, params.page, params.page_size, params.is_ascending
    )
    return Envelope(success=True, data=unwrap(result))


@router.get("/id/{article_id}", response_model=Envelope[ArticleResponse])
async def get_article_by_id(
    article_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.get_article_by_id(db, caller, article_id)
    return Envelope(success=True, data=unwrap(result))


@router.get("/{slug}", response_model=Envelope[ArticleResponse])
async def get_article_by_slug(
    slug: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.get_article_by_slug(db, caller, slug)
    return Envelope(success=True, data=unwrap(result))


@router.post("", status_code=201, response_model=Envelope[ArticleResponse])
async def create_article(
    data: ArticleCreate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.create_article(db, caller, data)
    return Envelope(success=True, data=unwrap(result))


@router.put("/{article_id}", response_model=Envelope[ArticleResponse])
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.update_article(db, caller, article_id, data)
    return Envelope(success=True, data=unwrap(result))


@router.put("/{article_id}/tags", response_model=Envelope[ArticleResponse])
async def set_article_tags(
    article_id: int,
    data: ArticleTagsUpdate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.set_article_tags(db, caller, article_id, data.tag_ids)
    return Envelope(success=True, data=unwrap(result))


@router.put("/{article_id}/restore", response_model=Envelope[ArticleResponse])
async def restore_article(
    article_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await article_service.restore_article(db, caller, article_id)
    return Envelope(success=True, data=unwrap(result))


@router.delete("/{article_id}", response_model=Envelope[None])
async def soft_delete_article(
    article_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
):
    unwrap(await article_service.soft_delete_article(db, caller, article_id))
    return Envelope(success=True)


@router.delete("/{article_id}/hard", response_model=Envelope[None])
async def hard_delete_article(
    article_id: int,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
):
    unwrap(await article_service.hard_delete_article(db, caller, article_id, storage))
    return Envelope(success=True)
