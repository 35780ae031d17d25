"""Category endpoints: public reads and admin writes."""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from api.dependencies import get_category_service, require_admin
from models.category import Category
from schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])
admin_router = APIRouter(
    prefix="/admin/categories",
    tags=["categories"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    category_service: CategoryService = Depends(get_category_service),
) -> list[CategoryResponse]:
    """All categories ordered by name."""
    return await category_service.list_categories()


@router.get("/slug/{slug}", response_model=CategoryResponse)
async def get_category_by_slug(
    slug: str,
    category_service: CategoryService = Depends(get_category_service),
) -> Category:
    """Get a category by its slug."""
    return await category_service.get_by_slug(slug)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: UUID,
    category_service: CategoryService = Depends(get_category_service),
) -> Category:
    """Get a category by ID."""
    return await category_service.get(category_id)


@admin_router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    category_service: CategoryService = Depends(get_category_service),
) -> Category:
    """Create a category. The slug is derived from the name when omitted."""
    return await category_service.create(data)


@admin_router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    category_service: CategoryService = Depends(get_category_service),
) -> Category:
    """Update a category."""
    return await category_service.update(category_id, data)


@admin_router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID,
    category_service: CategoryService = Depends(get_category_service),
) -> None:
    """Delete a category."""
    await category_service.delete(category_id)
