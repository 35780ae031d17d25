"""Service layer for categories, with the full list cached."""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import CacheKeys, JsonCache
from core.config import Settings
from models.category import Category
from schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from services.exceptions import CategoryNotFoundError, DuplicateSlugError
from services.utils import generate_slug

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Category reads and writes.

    `list_categories()` is cache-aside on `categories:all`; every mutation deletes that key
    after the store write.
    """

    def __init__(self, db: AsyncSession, cache: JsonCache, settings: Settings) -> None:
        self.db = db
        self.cache = cache
        self.settings = settings

    async def list_categories(self) -> list[CategoryResponse]:
        """All categories ordered by name."""
        cached = await self.cache.get_json(CacheKeys.CATEGORIES_ALL)
        if cached is not None:
            try:
                return [CategoryResponse.model_validate(item) for item in cached]
            except (TypeError, ValueError) as e:
                logger.warning("cache_projection_invalid key=%s error=%s", CacheKeys.CATEGORIES_ALL, e)

        result = await self.db.execute(select(Category).order_by(Category.name))
        categories = [CategoryResponse.model_validate(c) for c in result.scalars().all()]
        await self.cache.set_json(
            CacheKeys.CATEGORIES_ALL,
            [c.model_dump(mode="json") for c in categories],
            self.settings.cache_ttl_categories,
        )
        return categories

    async def get(self, category_id: UUID) -> Category:
        """
        Get a category by ID.

        Raises:
            CategoryNotFoundError: If the category doesn't exist.
        """
        category = await self.db.get(Category, category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def get_by_slug(self, slug: str) -> Category:
        """
        Get a category by slug.

        Raises:
            CategoryNotFoundError: If no category has that slug.
        """
        result = await self.db.execute(select(Category).where(Category.slug == slug))
        category = result.scalar_one_or_none()
        if category is None:
            raise CategoryNotFoundError(slug)
        return category

    async def create(self, data: CategoryCreate) -> Category:
        """
        Create a category.

        Raises:
            DuplicateSlugError: If the slug (or name) is already taken.
        """
        slug = data.slug or generate_slug(data.name)
        await self._ensure_slug_available(slug)
        category = Category(name=data.name, description=data.description, slug=slug)
        await self._flush(category, slug)
        await self._invalidate()
        logger.info("category_created category_id=%s slug=%s", category.id, slug)
        return category

    async def update(self, category_id: UUID, data: CategoryUpdate) -> Category:
        """
        Update a category. Renaming regenerates the slug unless one is given.

        Raises:
            CategoryNotFoundError: If the category doesn't exist.
            DuplicateSlugError: If the new slug is already taken.
        """
        category = await self.get(category_id)
        updates = data.model_dump(exclude_unset=True)

        if "name" in updates and updates["name"] is not None:
            category.name = updates["name"].strip()
            if data.slug is None:
                updates["slug"] = generate_slug(category.name)
        if "description" in updates:
            category.description = updates["description"]
        new_slug = updates.get("slug")
        if new_slug and new_slug != category.slug:
            await self._ensure_slug_available(new_slug, exclude_id=category.id)
            category.slug = new_slug

        await self._flush(category, category.slug)
        await self._invalidate()
        logger.info("category_updated category_id=%s", category.id)
        return category

    async def delete(self, category_id: UUID) -> None:
        """
        Delete a category. Courses keep their category text.

        Raises:
            CategoryNotFoundError: If the category doesn't exist.
        """
        category = await self.get(category_id)
        await self.db.delete(category)
        await self.db.flush()
        await self._invalidate()
        logger.info("category_deleted category_id=%s", category_id)

    async def _ensure_slug_available(self, slug: str, exclude_id: UUID | None = None) -> None:
        query = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if (await self.db.execute(query)).first() is not None:
            raise DuplicateSlugError(slug)

    async def _flush(self, category: Category, slug: str) -> None:
        # The unique indexes on name and slug catch concurrent creates
        try:
            async with self.db.begin_nested():
                self.db.add(category)
                await self.db.flush()
        except IntegrityError as e:
            raise DuplicateSlugError(slug) from e

    async def _invalidate(self) -> None:
        await self.cache.invalidate(CacheKeys.CATEGORIES_ALL)
