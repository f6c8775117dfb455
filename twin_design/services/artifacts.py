"""Copy provider-hosted result images into object storage, one artifact at a time."""

from __future__ import annotations

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

import requests

from twin_design.models import PersistedArtifact
from twin_design.services.object_store import ObjectStore, join_storage_path

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60
SIGNED_URL_TTL = 24 * 60 * 60


def download_artifact(url: str) -> bytes:
    """Fetch a pre-authorised provider URL; no credentials are attached."""

    response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
    response.raise_for_status()
    if not response.content:
        raise ValueError(f"empty artifact body from {url}")
    return response.content


def artifact_filename(
    base_name: str, suffix: str, ordinal: int, now: Optional[dt.datetime] = None
) -> str:
    timestamp = (now or dt.datetime.now(dt.timezone.utc)).strftime("%Y%m%d-%H%M%S")
    return f"{base_name}_{suffix}_{timestamp}_{ordinal}.png"


class ArtifactFanOutPersister:
    """Persist every result URL independently; failures shorten the result list.

    With ``max_workers > 1`` artifacts are handled on a bounded thread pool.
    The returned list is always ordered by the artifact's position in the
    provider output.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        filesystem: str,
        suffix: str = "design",
        max_workers: int = 1,
        url_ttl: int = SIGNED_URL_TTL,
        download: Callable[[str], bytes] = download_artifact,
    ) -> None:
        self.store = store
        self.filesystem = filesystem
        self.suffix = suffix
        self.max_workers = max(int(max_workers or 1), 1)
        self.url_ttl = url_ttl
        self.download = download

    def persist(
        self, urls: Sequence[str], destination_directory: str, base_name: str
    ) -> list[PersistedArtifact]:
        total = len(urls)
        logger.info("Saving %s result images to storage...", total)

        def _run(item: tuple[int, str]) -> Optional[PersistedArtifact]:
            ordinal, url = item
            return self._persist_one(ordinal, total, url, destination_directory, base_name)

        items = list(enumerate(urls, start=1))
        if self.max_workers == 1 or total <= 1:
            outcomes = [_run(item) for item in items]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as pool:
                outcomes = list(pool.map(_run, items))

        saved = [artifact for artifact in outcomes if artifact is not None]
        if len(saved) < total:
            logger.warning("Persisted %s of %s result images", len(saved), total)
        return saved

    def _persist_one(
        self,
        ordinal: int,
        total: int,
        url: str,
        directory: str,
        base_name: str,
    ) -> Optional[PersistedArtifact]:
        try:
            logger.info("Downloading result image %s/%s from: %s", ordinal, total, url)
            data = self.download(url)
            logger.info("Downloaded %s bytes", len(data))

            filename = artifact_filename(base_name, self.suffix, ordinal)
            if not self.store.upload(self.filesystem, directory, filename, data, "image/png"):
                logger.warning("Failed to upload result image %s/%s", ordinal, total)
                return None

            path = join_storage_path(self.filesystem, directory, filename)
            signed_url = self.store.generate_time_limited_url(path, self.url_ttl)
        except Exception:
            logger.exception("Error processing output image %s/%s", ordinal, total)
            return None

        logger.info("Saved result image %s/%s to: %s", ordinal, total, path)
        return PersistedArtifact(ordinal=ordinal, source_url=url, path=path, url=signed_url)
