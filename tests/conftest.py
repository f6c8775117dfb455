from __future__ import annotations

from io import BytesIO

from PIL import Image

from twin_design.services.object_store import join_storage_path


def make_png(width: int = 640, height: int = 640, mode: str = "RGB") -> bytes:
    color = (10, 20, 30, 0) if mode == "RGBA" else (10, 20, 30)
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(width: int = 640, height: int = 640) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), (200, 100, 50)).save(buffer, format="JPEG")
    return buffer.getvalue()


class FakeStore:
    """In-memory object store keyed by full storage path."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects = dict(objects or {})
        self.downloads: list[str] = []
        self.uploads: list[str] = []
        self.fail_uploads: set[str] = set()

    def download(self, path):
        self.downloads.append(path)
        return self.objects.get(path)

    def upload(self, filesystem, directory, filename, data, content_type):
        key = join_storage_path(filesystem, directory, filename)
        if filename in self.fail_uploads:
            return False
        self.uploads.append(key)
        self.objects[key] = data
        return True

    def generate_time_limited_url(self, path, duration):
        return f"https://storage.example.com/{path}?ttl={duration}"
