"""Pydantic request/response schemas for the Catalog API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ProductRequest(BaseModel):
    item: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    description: str = ""
    image: str | None = None
    category: str = "General"
    is_new: bool = False
    is_archived: bool = False
    created_at: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "item": "grid-trader",
                    "name": "Grid Trader Bot",
                    "price": 25.0,
                    "description": "Range-bound grid trading bot",
                    "category": "Trading",
                    "is_new": True,
                }
            ]
        }
    }


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class SettingsRequest(BaseModel):
    values: dict[str, Any]


class StaticPageSchema(BaseModel):
    slug: str = Field(min_length=1, max_length=200)
    title: str
    content: str = ""
    is_active: bool = True


class StaticPagesRequest(BaseModel):
    pages: list[StaticPageSchema]


class StatusResponse(BaseModel):
    status: str
