"""Pydantic models exposed by the design-job HTTP surface."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accept camelCase or snake_case keys and ignore unknown ones."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TransformationRequest(_CamelModel):
    """Input of a single design job: where the source image lives and how to transform it."""

    twin_id: str = Field("", description="Storage container (twin) that owns the source image.")
    operation: str = Field("perfect_redesign", description="Catalog name of the provider operation.")
    file_path: str = Field(..., description="Directory of the source image inside the container.")
    file_name: str = Field(..., min_length=1, description="File name of the source image.")
    design_type: str = Field("Interior", description="Interior, Exterior, Garden or a provider variant.")
    ai_intervention: str = Field("Mid", description="How strongly the provider may alter the scene.")
    no_design: int = Field(1, description="Number of output variations requested.")
    design_style: str = Field("Modern", description="Provider style preset.")
    room_type: Optional[str] = Field(None, description="Required for Interior designs.")
    house_angle: Optional[str] = Field(None, description="Exterior camera angle.")
    garden_type: Optional[str] = Field(None, description="Garden layout preset.")
    custom_instruction: Optional[str] = None
    prompt: Optional[str] = None
    keep_structural: bool = Field(True, description="Keep walls, windows and doors untouched.")
    masked_file_path: Optional[str] = Field(None, description="Directory of the mask image.")
    masked_file_name: Optional[str] = Field(None, description="File name of the mask image.")

    @field_validator(
        "room_type",
        "house_angle",
        "garden_type",
        "custom_instruction",
        "prompt",
        "masked_file_path",
        "masked_file_name",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("file_path", "design_type", "ai_intervention", "design_style", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class OrchestrationResult(_CamelModel):
    """Terminal value of a design job; built once and never mutated."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    message: Optional[str] = None
    twin_id: str = ""
    operation: str = ""
    queue_id: Optional[str] = None
    status: Optional[str] = None
    input_image: Optional[str] = None
    output_images: list[str] = Field(default_factory=list)
    saved_image_urls: list[str] = Field(default_factory=list)
    design_type: Optional[str] = None
    design_style: Optional[str] = None
    ai_intervention: Optional[str] = None
    number_of_designs: int = 0
    requested_designs: int = 0
    persistence_shortfall: Optional[str] = None
    processing_time_seconds: float = 0.0
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    timestamp: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    status_code: int = Field(200, exclude=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
