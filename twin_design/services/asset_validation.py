from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from twin_design.errors import AssetMissingTransparency, AssetTooSmall
from twin_design.models import AssetInspection, SourceAsset

logger = logging.getLogger(__name__)

DEFAULT_MIN_DIMENSION = 512
_ALPHA_MODES = {"RGBA", "RGBa", "LA", "La", "PA"}


class InspectionFailed(ValueError):
    """The bytes could not be decoded as an image header."""


def inspect_image(data: bytes) -> AssetInspection:
    """Read size, mode and alpha presence from the image header only."""

    try:
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            mode = image.mode
            has_alpha = mode in _ALPHA_MODES or "transparency" in image.info
            return AssetInspection(
                width=int(width),
                height=int(height),
                has_alpha=has_alpha,
                format=image.format,
                mode=mode,
            )
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise InspectionFailed(str(exc)) from exc


def validate_source_asset(
    asset: SourceAsset,
    *,
    min_dimension: int = DEFAULT_MIN_DIMENSION,
    require_alpha: bool = False,
) -> AssetInspection | None:
    """Check provider minimums; undecodable images only produce a warning.

    Returns the inspection, or ``None`` when the header could not be read and
    the provider is left to judge the file.
    """

    try:
        inspection = inspect_image(asset.data)
    except InspectionFailed as exc:
        logger.warning(
            "Could not validate image dimensions for %s, continuing anyway: %s",
            asset.path,
            exc,
        )
        return None

    logger.info(
        "Image dimensions: %sx%s pixels (mode=%s format=%s)",
        inspection.width,
        inspection.height,
        inspection.mode,
        inspection.format,
    )

    if inspection.width < min_dimension or inspection.height < min_dimension:
        logger.error(
            "Image dimensions too small: %sx%s. Minimum required: %sx%s",
            inspection.width,
            inspection.height,
            min_dimension,
            min_dimension,
        )
        raise AssetTooSmall(inspection.width, inspection.height, min_dimension)

    if require_alpha:
        if inspection.format != "PNG":
            logger.warning("Image is not PNG (%s); a transparent PNG is expected", inspection.format)
        if not inspection.has_alpha:
            raise AssetMissingTransparency(inspection.mode, inspection.format)

    asset.inspection = inspection
    return inspection
