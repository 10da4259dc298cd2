from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .schemas import SchemaType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationConfig(_CamelModel):
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None
    system_instruction: str | None = None


class GenerateRequest(_CamelModel):
    model: str = Field(..., min_length=1)
    contents: str = Field(..., min_length=1)
    config: GenerationConfig | None = None


class GatewayConfig(_CamelModel):
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class GatewayRequest(_CamelModel):
    prompt: str = Field(..., min_length=1)
    system_instruction: str | None = None
    schema_type: SchemaType = SchemaType.logs
    config: GatewayConfig | None = None


class TextResponse(BaseModel):
    text: str
