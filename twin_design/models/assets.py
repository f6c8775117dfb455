from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AssetInspection:
    width: int
    height: int
    has_alpha: bool
    format: Optional[str] = None
    mode: Optional[str] = None


@dataclass
class SourceAsset:
    """Bytes of a source image, owned by a single pipeline run and never persisted."""

    path: str
    filename: str
    data: bytes
    content_type: str = "image/png"
    inspection: Optional[AssetInspection] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class PersistedArtifact:
    ordinal: int
    source_url: str
    path: str
    url: str
