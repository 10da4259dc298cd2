from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Dish(_CamelModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    price: str | None = None
    category: str | None = None


class MenuData(_CamelModel):
    dishes: list[Dish] = Field(default_factory=list)
    cuisine_type: str | None = None
    specialties: list[str] = Field(default_factory=list)
    raw_text_sample: str | None = None


class MenuExtractRequest(_CamelModel):
    website_url: str = Field(..., min_length=1)
    restaurant_name: str | None = None


class MenuExtractResponse(_CamelModel):
    success: bool
    data: MenuData = Field(default_factory=MenuData)
    content_length: int | None = None
    message: str | None = None
