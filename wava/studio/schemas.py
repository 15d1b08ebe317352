from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InlineData(BaseModel):
    mime_type: str = Field(alias="mimeType")
    data: str

    model_config = ConfigDict(populate_by_name=True)


class ContentPart(BaseModel):
    text: str | None = None
    inline_data: InlineData | None = Field(default=None, alias="inlineData")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> "ContentPart":
        if (self.text is None) == (self.inline_data is None):
            raise ValueError("each part must carry exactly one of 'text' or 'inlineData'")
        return self


class ContentTurn(BaseModel):
    role: str = "user"
    parts: list[ContentPart] = Field(min_length=1)


class GenerateRequest(BaseModel):
    contents: list[ContentTurn]
    system_instruction: str | None = None
    response_schema: dict[str, Any] | None = None
    response_mime_type: str | None = None
    model_queue: list[str] | None = None

    model_config = ConfigDict(extra="allow")


class ThumbnailPlanRequest(BaseModel):
    main_copy: str = ""
    image_style: Literal["clean", "lifestyle", "creative"] = "clean"
    aspect_ratio: str = "1:1"
    width: int = Field(default=1024, gt=0)
    height: int = Field(default=1024, gt=0)
    additional_request: str | None = None
    image: InlineData | None = None


class DetailPagePlanRequest(BaseModel):
    product_name: str
    category: str = ""
    features: str = ""
    target_audience: list[str] = Field(default_factory=list)
    page_length: Literal["auto", "short", "standard", "long"] = "auto"
    price: int | None = None
    promotion_info: str | None = None
    image: InlineData | None = None


class FeatureSuggestionRequest(BaseModel):
    product_name: str = Field(min_length=1)


class PredictionCreateRequest(BaseModel):
    version: str = Field(min_length=1)
    input: dict[str, Any] = Field(default_factory=dict)
