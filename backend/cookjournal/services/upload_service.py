"""
Cook Journal Backend — Upload Service
=======================================

What:  Turns one uploaded picture into a normalized square WebP derivative
       and returns the public URL it is served under.
Why:   Clients upload before creating a recipe/attempt, then embed the URL.
How:   Pillow does the codec work (in Starlette's threadpool so the event
       loop never blocks on decoding); aiofiles writes the result.
Who:   Called by routes/uploads.py.

Pipeline:
    bytes ─▶ size/type checks ─▶ decode ─▶ EXIF transpose ─▶ centre crop to
    square (shorter side) ─▶ resize to image_size² ─▶ WebP @ image_quality
    ─▶ <upload_dir>/<epoch-ms>_<0..1000000>.webp

Security Model:
    - Stored filenames are generated; no client input reaches the filesystem
    - The original bytes are never stored, only the re-encoded derivative
      (which also drops EXIF/GPS metadata)
    - resolve_path() rejects anything that would escape upload_dir
"""

import io
import logging
import random
import re
import time
from pathlib import Path
from typing import Optional

import aiofiles
from PIL import Image, ImageOps
from starlette.concurrency import run_in_threadpool

from cookjournal.config import settings
from cookjournal.exceptions import InternalError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_FAILED = "Upload failed"

# Generated names are "<digits>_<digits>.webp"; anything else is never served
STORED_NAME = re.compile(r"^[A-Za-z0-9_-]+\.webp$")


def normalize_image(
    content: bytes,
    size: Optional[int] = None,
    quality: Optional[int] = None,
) -> bytes:
    """
    Decode, orient, crop, resize and re-encode. Synchronous and CPU-bound;
    call it through run_in_threadpool from async code.
    """
    size = size or settings.image_size
    quality = quality or settings.image_quality

    with Image.open(io.BytesIO(content)) as source:
        image = ImageOps.exif_transpose(source)

        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")

        # fit() crops the centred square of the shorter side, then resamples
        square = ImageOps.fit(
            image,
            (size, size),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

        out = io.BytesIO()
        square.save(out, format="WEBP", quality=quality)
        return out.getvalue()


def generate_filename() -> str:
    return f"{int(time.time() * 1000)}_{random.randint(0, 1_000_000)}.webp"


class UploadService:
    """
    Upload validation, normalization and storage.

    Error mapping:
        missing/empty file, non-image MIME, oversize → ValidationError (400, field "file")
        decode/encode/filesystem failure             → InternalError (500, "Upload failed")
    """

    def __init__(self, upload_dir: Optional[str] = None):
        self._upload_dir = upload_dir

    @property
    def upload_dir(self) -> Path:
        # Resolved lazily so tests can point settings.upload_dir elsewhere
        return Path(self._upload_dir or settings.upload_dir).resolve()

    def ensure_upload_dir(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def validate(self, content: Optional[bytes], content_type: Optional[str]) -> None:
        if not content:
            raise ValidationError(message="No file uploaded", field="file")

        if not (content_type or "").lower().startswith("image/"):
            raise ValidationError(
                message="File must be an image",
                field="file",
                context={"content_type": content_type},
            )

        self.validate_size(len(content))

    def validate_size(self, size: Optional[int]) -> None:
        """
        Reject a file larger than max_upload_size.

        Called with the size the multipart parser recorded before the file is
        read into memory, then again with the byte count actually read.
        """
        if size is not None and size > settings.max_upload_size:
            max_mb = settings.max_upload_size / (1024 * 1024)
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB",
                field="file",
                context={"actual_size": size, "max_size": settings.max_upload_size},
            )

    async def read_bounded(self, file) -> bytes:
        """
        Read an UploadFile without holding more than max_upload_size + 1 bytes.

        The spooled upload stays on disk past Starlette's memory threshold, so
        only this read brings it into memory.
        """
        self.validate_size(getattr(file, "size", None))
        content = await file.read(settings.max_upload_size + 1)
        self.validate_size(len(content))
        return content

    async def upload(
        self,
        content: Optional[bytes],
        content_type: Optional[str],
        base_url: str,
    ) -> str:
        """
        Validate, normalize and store one image.

        Args:
            content: raw uploaded bytes (None when the field was absent)
            content_type: MIME type declared by the client
            base_url: "<scheme>://<host>" of the incoming request

        Returns:
            Absolute URL of the stored derivative
        """
        self.validate(content, content_type)

        try:
            encoded = await run_in_threadpool(normalize_image, content)
        except Exception as e:
            logger.error("Image normalization failed: %s", e, exc_info=True)
            raise InternalError(message=UPLOAD_FAILED, context={"error": str(e)})

        filename = generate_filename()
        path = self.upload_dir / filename
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(encoded)
        except OSError as e:
            logger.error("Failed to store upload at %s: %s", path, e)
            raise InternalError(message=UPLOAD_FAILED, context={"path": str(path)})

        logger.info("Upload stored: %s (%d → %d bytes)", filename, len(content), len(encoded))
        return f"{base_url.rstrip('/')}{settings.upload_url_prefix}/{filename}"

    def resolve_path(self, filename: str) -> Path:
        """
        Map a requested filename to a stored file.

        Raises:
            NotFoundError: bad name, traversal attempt, or no such file
        """
        root = self.upload_dir
        if not STORED_NAME.match(filename):
            raise NotFoundError(resource="upload", resource_id=filename)

        path = (root / filename).resolve()
        if path.parent != root or not path.is_file():
            raise NotFoundError(resource="upload", resource_id=filename)
        return path


# ── Singleton Instance ────────────────────────────────────────────────────
upload_service = UploadService()
