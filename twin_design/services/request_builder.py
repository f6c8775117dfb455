"""Assemble the multipart form sent to the provider for one design job."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from twin_design.errors import InvalidParameter, MissingRequiredField
from twin_design.models import SourceAsset
from twin_design.schemas import TransformationRequest
from twin_design.services.design_operations import (
    DISCRIMINANT_FIELDS,
    DesignOperation,
    DesignType,
)

FilePart = Tuple[str, bytes, str]


@dataclass
class MultipartPayload:
    fields: Dict[str, str] = field(default_factory=dict)
    files: List[Tuple[str, FilePart]] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Loggable view of the payload without the binary parts."""

        described = {name: f"{part[0]} ({len(part[1])} bytes, {part[2]})" for name, part in self.files}
        return {**self.fields, "files": described}


def check_request(operation: DesignOperation, request: TransformationRequest) -> None:
    """Reject requests the provider would refuse, before any I/O happens."""

    if operation.requires_mask and not request.masked_file_name:
        raise MissingRequiredField("masked_file_name")

    if not operation.design_parameters:
        return

    if not request.design_type:
        raise MissingRequiredField("design_type")
    if request.no_design < 1:
        raise InvalidParameter("no_design", "must be a positive integer")

    design_type = DesignType.parse(request.design_type)
    required = operation.requires_field(design_type)
    if required and not getattr(request, required):
        raise MissingRequiredField(required, design_type.value if design_type else None)


def _discriminant_fields(request: TransformationRequest) -> Dict[str, str]:
    design_type = DesignType.parse(request.design_type)
    if design_type is not None:
        name = DISCRIMINANT_FIELDS[design_type]
        value = getattr(request, name)
        return {name: value} if value else {}

    # Provider-specific design types: forward whatever the caller supplied.
    return {
        name: getattr(request, name)
        for name in DISCRIMINANT_FIELDS.values()
        if getattr(request, name)
    }


def build_payload(
    operation: DesignOperation,
    request: TransformationRequest,
    source: SourceAsset,
    mask: Optional[SourceAsset] = None,
) -> MultipartPayload:
    check_request(operation, request)

    payload = MultipartPayload()
    payload.files.append(("image", (source.filename, source.data, source.content_type)))
    if operation.requires_mask:
        if mask is None:
            raise MissingRequiredField("masked_image")
        payload.files.append(("masked_image", (mask.filename, mask.data, mask.content_type)))

    if operation.design_parameters:
        payload.fields["design_type"] = request.design_type
        if operation.sends_intervention:
            payload.fields["ai_intervention"] = request.ai_intervention
        payload.fields["no_design"] = str(request.no_design)
        payload.fields["design_style"] = request.design_style
        if operation.sends_keep_structural:
            payload.fields["keep_structural_element"] = str(request.keep_structural).lower()
        payload.fields.update(_discriminant_fields(request))

    for name in operation.text_fields:
        value = getattr(request, name, None)
        if value:
            payload.fields[name] = value

    return payload
