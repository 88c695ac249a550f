from fastapi import Query

from blog_backend.services.article_query import ArticleFilters


class ArticleListParams:
    """
    Reusable FastAPI dependency that parses the article list query string.

    Usage in a router::

        @router.get("")
        async def list_articles(params: ArticleListParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number.  Out-of-range values are clamped by
        ``PageWindow.clamp`` rather than rejected.
    page_size:
        Requested items per page; clamped to ``settings.MAX_PAGE_SIZE``.
    is_ascending:
        Sort by creation time ascending when true (default newest first).
    filters:
        ``ArticleFilters`` built from the category/tag/keyword parameters
        and the ``includeDeleted`` flag.
    """

    def __init__(
        self,
        page: int | None = Query(None, description="Page number (1-based)."),
        page_size: int | None = Query(
            None,
            alias="pageSize",
            description="Items per page (default 10, max 20).",
        ),
        is_ascending: bool = Query(
            False,
            alias="isAscending",
            description="Sort by creation date ascending instead of descending.",
        ),
        category_slug: str | None = Query(None, alias="categorySlug"),
        tag_slug: str | None = Query(None, alias="tagSlug"),
        keyword: str | None = Query(
            None,
            max_length=200,
            description="Case-insensitive substring matched against title and content.",
        ),
        include_deleted: bool = Query(
            False,
            alias="includeDeleted",
            description="Include soft-deleted articles (admins only; ignored otherwise).",
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.is_ascending = is_ascending
        self.filters = ArticleFilters(
            category_slug=(category_slug or "").strip() or None,
            tag_slug=(tag_slug or "").strip() or None,
            keyword=(keyword or "").strip() or None,
            include_deleted=include_deleted,
        )
