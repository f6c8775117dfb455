"""Catalog of HomeDesigns.ai operations that run through the design-job pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from twin_design.errors import InvalidParameter


class DesignType(str, Enum):
    INTERIOR = "Interior"
    EXTERIOR = "Exterior"
    GARDEN = "Garden"

    @classmethod
    def parse(cls, value: str | None) -> Optional["DesignType"]:
        text = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


# Request field each design type depends on.
DISCRIMINANT_FIELDS: Dict[DesignType, str] = {
    DesignType.INTERIOR: "room_type",
    DesignType.EXTERIOR: "house_angle",
    DesignType.GARDEN: "garden_type",
}


class ResponseMode(str, Enum):
    QUEUED = "queued"
    IMMEDIATE = "immediate"


@dataclass(frozen=True)
class DesignOperation:
    name: str
    path: str
    route: str
    mode: ResponseMode
    artifact_suffix: str
    default_directory: str
    sends_intervention: bool = False
    sends_keep_structural: bool = False
    strict_discriminant: bool = False
    requires_alpha: bool = False
    requires_mask: bool = False
    design_parameters: bool = True
    text_fields: Tuple[str, ...] = ()

    def submit_url(self, api_base: str) -> str:
        return f"{api_base.rstrip('/')}/{self.path}"

    def status_url(self, api_base: str, job_id: str) -> str:
        return f"{self.submit_url(api_base)}/status_check/{job_id}"

    def requires_field(self, design_type: Optional[DesignType]) -> Optional[str]:
        """Name of the field the provider demands for ``design_type``, if any."""

        if not self.design_parameters or design_type is None:
            return None
        if design_type is DesignType.INTERIOR or self.strict_discriminant:
            return DISCRIMINANT_FIELDS[design_type]
        return None


PERFECT_REDESIGN = DesignOperation(
    name="perfect_redesign",
    path="perfect_redesign",
    route="house-redesign",
    mode=ResponseMode.QUEUED,
    artifact_suffix="redesign",
    default_directory="house-redesigns",
    sends_intervention=True,
    sends_keep_structural=True,
    text_fields=("custom_instruction",),
)

VIRTUAL_STAGING = DesignOperation(
    name="virtual_staging",
    path="virtual_staging",
    route="virtual-staging",
    mode=ResponseMode.QUEUED,
    artifact_suffix="staging",
    default_directory="virtual-staging",
    sends_intervention=True,
    text_fields=("custom_instruction",),
)

BEAUTIFUL_REDESIGN = DesignOperation(
    name="beautiful_redesign",
    path="beautiful_redesign",
    route="beautiful-redesign",
    mode=ResponseMode.IMMEDIATE,
    artifact_suffix="beautiful",
    default_directory="beautiful-redesigns",
    sends_intervention=True,
    sends_keep_structural=True,
    text_fields=("prompt",),
)

DECOR_DESIGN = DesignOperation(
    name="decor_design",
    path="decor_design",
    route="decor-design",
    mode=ResponseMode.IMMEDIATE,
    artifact_suffix="decor",
    default_directory="decor-designs",
    text_fields=("custom_instruction",),
)

DECOR_STAGING = DesignOperation(
    name="decor_staging",
    path="decor_staging",
    route="decor-staging",
    mode=ResponseMode.IMMEDIATE,
    artifact_suffix="decor",
    default_directory="decor-staging",
    strict_discriminant=True,
    requires_alpha=True,
    text_fields=("prompt",),
)

FURNITURE_REMOVAL = DesignOperation(
    name="furniture_removal",
    path="furniture_removal",
    route="furniture-removal",
    mode=ResponseMode.IMMEDIATE,
    artifact_suffix="removal",
    default_directory="furniture-removal",
    requires_mask=True,
    design_parameters=False,
)

OPERATIONS: Dict[str, DesignOperation] = {
    op.name: op
    for op in (
        PERFECT_REDESIGN,
        VIRTUAL_STAGING,
        BEAUTIFUL_REDESIGN,
        DECOR_DESIGN,
        DECOR_STAGING,
        FURNITURE_REMOVAL,
    )
}


def get_operation(name: str) -> DesignOperation:
    key = (name or "").strip().lower().replace("-", "_")
    operation = OPERATIONS.get(key)
    if operation is None:
        for candidate in OPERATIONS.values():
            if candidate.route.replace("-", "_") == key:
                return candidate
        raise InvalidParameter("operation", f"unknown design operation '{name}'")
    return operation
