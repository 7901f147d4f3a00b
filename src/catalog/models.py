"""Catalog entities and the snapshot served to storefront readers."""

from datetime import datetime

from pydantic import BaseModel, Field


class Product(BaseModel):
    item: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    description: str = ""
    image: str | None = None
    category: str = "General"
    is_new: bool = False
    is_archived: bool = False
    created_at: datetime | None = None


class Category(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class StaticPage(BaseModel):
    slug: str = Field(min_length=1, max_length=200)
    title: str
    content: str = ""
    is_active: bool = True


class Socials(BaseModel):
    tiktok: str = ""
    whatsapp: str = ""
    call: str = ""
    instagram: str = ""
    x: str = ""
    facebook: str = ""
    youtube: str = ""


class UrgentMessage(BaseModel):
    enabled: bool = False
    text: str = ""


class PaymentOptions(BaseModel):
    """Which checkout rails are switched on."""

    mpesa_manual: bool = True
    mpesa_payhero: bool = True
    crypto_nowpayments: bool = True


class StoreSettings(BaseModel):
    support_email: str = "support@botstore.local"
    copyright_text: str = "© Bot Store"
    logo_url: str = ""
    socials: Socials = Field(default_factory=Socials)
    urgent_message: UrgentMessage = Field(default_factory=UrgentMessage)
    fallback_rate: float = 130.0
    mpesa_till: str = ""
    active_payment_options: PaymentOptions = Field(default_factory=PaymentOptions)


class CatalogSnapshot(BaseModel):
    products: list[Product] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    settings: StoreSettings = Field(default_factory=StoreSettings)
    static_pages: list[StaticPage] = Field(default_factory=list)

    def find_product(self, item: str) -> Product | None:
        for product in self.products:
            if product.item == item:
                return product
        return None

    def find_page(self, slug: str) -> StaticPage | None:
        for page in self.static_pages:
            if page.slug == slug:
                return page
        return None
