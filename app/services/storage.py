import os
import uuid

SUPPORTED_UPLOAD_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


def _ext_from_mime(mime_type: str) -> str:
    mime = (mime_type or "").lower()
    if mime == "image/png":
        return ".png"
    if mime in {"image/jpeg", "image/jpg"}:
        return ".jpg"
    if mime == "image/webp":
        return ".webp"
    if mime == "image/gif":
        return ".gif"
    return ".bin"


class LocalMediaStore:
    """Writes uploaded images under `root_dir` and serves them from `url_prefix`."""

    def __init__(self, root_dir: str, url_prefix: str, max_bytes: int | None = None):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def save_image_bytes(self, image_bytes: bytes, mime_type: str) -> tuple[str, str]:
        if (mime_type or "").lower() not in SUPPORTED_UPLOAD_TYPES:
            raise ValueError(f"Unsupported image type: {mime_type}")
        if not image_bytes:
            raise ValueError("Uploaded image is empty")
        if self.max_bytes is not None and len(image_bytes) > self.max_bytes:
            raise ValueError(f"Image exceeds {self.max_bytes} bytes")

        os.makedirs(self.root_dir, exist_ok=True)

        file_id = str(uuid.uuid4())
        filename = f"{file_id}{_ext_from_mime(mime_type)}"
        file_path = os.path.join(self.root_dir, filename)

        with open(file_path, "wb") as f:
            f.write(image_bytes)

        return file_path, f"{self.url_prefix}/{filename}"
