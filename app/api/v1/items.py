from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_db
from app.core.pagination import decode_cursor, encode_cursor
from app.models.items import Category, ContentItem
from app.models.source import ContentSource
from app.schemas.items import ContentItemCursorPage, ContentItemResponse

router = APIRouter()


def to_item_response(item: ContentItem) -> ContentItemResponse:
    return ContentItemResponse(
        id=item.id,
        source_key=item.source.source_key,
        title=item.title,
        url=item.url,
        external_id=item.external_id,
        excerpt=item.excerpt,
        image_url=item.image_url,
        published_at=item.published_at,
        categories=sorted(category.name for category in item.categories),
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


@router.get(
    "/",
    response_model=ContentItemCursorPage,
    summary="Get the content feed",
    description="Retrieve ingested content items, newest first, using cursor-based pagination. "
    "Supports filtering by source key and category.",
)
async def get_items(
    source: str | None = Query(
        None,
        description="Filter by source key (e.g., 'tmdb', 'api-sports')",
        examples=["tmdb"],
    ),
    category: str | None = Query(
        None,
        description="Filter by category name",
        examples=["sports"],
    ),
    cursor: str | None = Query(
        None,
        description="Cursor from the previous page's 'next_cursor'",
    ),
    limit: int = Query(20, ge=1, le=100, description="Number of items to return per page", examples=[20]),
    db: AsyncSession = Depends(get_db),
) -> ContentItemCursorPage:
    """
    Fetch content items using cursor-based pagination.

    The cursor encodes the published_at timestamp and item ID of the last item
    on the previous page, so the position stays stable while new items arrive.
    """
    query = select(ContentItem).options(selectinload(ContentItem.source), selectinload(ContentItem.categories))

    if source:
        query = query.join(ContentSource).where(ContentSource.source_key == source)

    if category:
        query = query.where(ContentItem.categories.any(Category.name == category))

    if cursor:
        try:
            cursor_published_at, cursor_id = decode_cursor(cursor)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid cursor: {e}") from e

        # (published_at, id) strictly after the cursor in descending order
        query = query.where(
            or_(
                ContentItem.published_at < cursor_published_at,
                and_(ContentItem.published_at == cursor_published_at, ContentItem.id < cursor_id),
            ),
        )

    # Fetch one extra row to know whether there is a next page
    query = query.order_by(ContentItem.published_at.desc(), ContentItem.id.desc()).limit(limit + 1)
    items = list((await db.execute(query)).scalars().all())

    next_cursor = None
    if len(items) > limit:
        items = items[:limit]
        next_cursor = encode_cursor(items[-1].published_at, items[-1].id)

    return ContentItemCursorPage(
        limit=limit,
        next_cursor=next_cursor,
        items=[to_item_response(item) for item in items],
    )


@router.get("/{item_id}", response_model=ContentItemResponse, summary="Get a single content item")
async def get_item(item_id: int, db: AsyncSession = Depends(get_db)) -> ContentItemResponse:
    query = (
        select(ContentItem)
        .options(selectinload(ContentItem.source), selectinload(ContentItem.categories))
        .where(ContentItem.id == item_id)
    )
    item = (await db.execute(query)).scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return to_item_response(item)
