"""FastAPI routes for the storefront catalog."""

from fastapi import APIRouter, Depends

from catalog.api.schemas import (
    CategoryRequest,
    ProductRequest,
    SettingsRequest,
    StaticPagesRequest,
    StatusResponse,
)
from catalog.models import CatalogSnapshot, Category, Product, StaticPage
from container import get_container
from shared.errors import NotFoundError
from shared.http import require_admin

router = APIRouter(prefix="/catalog", tags=["catalog"])
admin_router = APIRouter(prefix="/catalog", tags=["catalog-admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=CatalogSnapshot)
def get_catalog() -> CatalogSnapshot:
    """Products, categories, settings and static pages in one snapshot."""
    return get_container().catalog.get_catalog_snapshot()


@router.get("/pages/{slug:path}", response_model=StaticPage)
def get_page(slug: str) -> StaticPage:
    page = get_container().catalog.get_catalog_snapshot().find_page(f"/{slug.lstrip('/')}")
    if page is None or not page.is_active:
        raise NotFoundError(f"Page /{slug} not found", slug=slug)
    return page


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------
@admin_router.put("/products", response_model=Product)
def save_product(body: ProductRequest) -> Product:
    return get_container().catalog.save_product(Product(**body.model_dump()))


@admin_router.delete("/products/{item}", response_model=StatusResponse)
def delete_product(item: str) -> StatusResponse:
    get_container().catalog.delete_product(item)
    return StatusResponse(status="deleted")


@admin_router.post("/categories", status_code=201, response_model=Category)
def add_category(body: CategoryRequest) -> Category:
    return get_container().catalog.add_category(body.name)


@admin_router.put("/settings", response_model=StatusResponse)
def save_settings(body: SettingsRequest) -> StatusResponse:
    get_container().catalog.save_settings(body.values)
    return StatusResponse(status="saved")


@admin_router.put("/pages", response_model=StatusResponse)
def save_pages(body: StaticPagesRequest) -> StatusResponse:
    get_container().catalog.save_static_pages([StaticPage(**page.model_dump()) for page in body.pages])
    return StatusResponse(status="saved")
