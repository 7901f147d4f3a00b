"""Catalog service: snapshot reads through the cache, admin writes through it too."""

import structlog

from catalog.cache import CacheManager
from catalog.models import CatalogSnapshot, Category, Product, StaticPage
from catalog.settings import decode_settings, encode_setting
from shared.clock import Clock, system_clock, utc_now
from shared.errors import NotFoundError, ValidationError
from store.port import BackingStore

logger = structlog.get_logger(__name__)

SNAPSHOT_KEY = "catalog:snapshot"
DEFAULT_CATEGORY = "General"

FALLBACK_PAGES = (
    StaticPage(
        slug="/payment-modal",
        title="Payment Modal",
        content=(
            "<h3 id=\"payment-title\"></h3>"
            "<p>Please send the payment via MPESA to:</p>"
            "<p>Till Number: <span id=\"mpesa-till-number\"></span></p>"
            "<p id=\"payment-amount\"></p>"
        ),
    ),
    StaticPage(
        slug="/ref-code-modal",
        title="Ref Code Modal",
        content=(
            "<h3>Enter MPESA Ref Code</h3>"
            "<input id=\"ref-code-input\" type=\"text\" placeholder=\"e.g., QK12345678\">"
        ),
    ),
)


class CatalogService:
    def __init__(self, store: BackingStore, cache: CacheManager, clock: Clock = system_clock) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock
        cache.register(SNAPSHOT_KEY, self._load_snapshot)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------
    def _load_snapshot(self) -> dict:
        products = [
            Product.model_validate(row)
            for row in self.store.find(
                "products",
                order_by=[("is_new", True), ("created_at", True), ("item", False)],
            )
        ]

        names = list(dict.fromkeys(row["name"] for row in self.store.find("categories", order_by=[("name", False)])))
        categories = [Category(name=name) for name in names] or [Category(name=DEFAULT_CATEGORY)]

        settings = decode_settings(self.store.find("settings"))

        pages = [StaticPage.model_validate(row) for row in self.store.find("static_pages", order_by=[("slug", False)])]
        slugs = {page.slug for page in pages}
        pages.extend(page for page in FALLBACK_PAGES if page.slug not in slugs)

        snapshot = CatalogSnapshot(products=products, categories=categories, settings=settings, static_pages=pages)
        return snapshot.model_dump(mode="json")

    def get_catalog_snapshot(self) -> CatalogSnapshot:
        return CatalogSnapshot.model_validate(self.cache.get(SNAPSHOT_KEY))

    def find_product(self, item: str) -> Product | None:
        return self.get_catalog_snapshot().find_product(item)

    def require_purchasable(self, item: str) -> Product:
        product = self.find_product(item)
        if product is None:
            raise ValidationError({"item": ["unknown item"]})
        if product.is_archived:
            raise ValidationError({"item": ["item is archived"]})
        return product

    # -----------------------------------------------------------------
    # Admin writes
    # -----------------------------------------------------------------
    def save_product(self, product: Product) -> Product:
        row = product.model_dump()
        if row["created_at"] is None:
            existing = self.store.get("products", item=product.item)
            row["created_at"] = existing["created_at"] if existing else utc_now(self.clock)
        saved = self.cache.write(SNAPSHOT_KEY, lambda: self.store.upsert("products", row, ("item",)))
        logger.info("Product saved", item=product.item)
        return Product.model_validate(saved)

    def delete_product(self, item: str) -> None:
        def mutation():
            if self.store.delete("products", item=item) == 0:
                raise NotFoundError(f"Product {item} not found", item=item)

        self.cache.write(SNAPSHOT_KEY, mutation)
        logger.info("Product deleted", item=item)

    def add_category(self, name: str) -> Category:
        name = name.strip()
        if not name:
            raise ValidationError({"name": ["is required"]})
        self.cache.write(SNAPSHOT_KEY, lambda: self.store.insert("categories", {"name": name}))
        logger.info("Category added", name=name)
        return Category(name=name)

    def save_settings(self, values: dict) -> None:
        # Encode everything first so a bad value writes nothing
        encoded = {key: encode_setting(key, value) for key, value in values.items()}

        def mutation():
            for key, text in encoded.items():
                self.store.upsert("settings", {"key": key, "value": text}, ("key",))

        self.cache.write(SNAPSHOT_KEY, mutation)
        logger.info("Store settings saved", keys=sorted(encoded))

    def save_static_pages(self, pages: list[StaticPage]) -> None:
        def mutation():
            for page in pages:
                self.store.upsert("static_pages", page.model_dump(), ("slug",))

        self.cache.write(SNAPSHOT_KEY, mutation)
        logger.info("Static pages saved", slugs=[page.slug for page in pages])
