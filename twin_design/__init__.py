"""Digital-twin design service: external image-transformation job orchestration."""

__version__ = "1.0.0"
