from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..errors import ContentError, ValidationError
from .content_locator import ContentLocator
from .document_patcher import DocumentPatcher, PatchResult

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "svg", "ico"}
# Pillow cannot open vector images
_UNVERIFIED_EXTENSIONS = {"svg"}
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str | None) -> str:
    """
    Reduce a client supplied name to a bare file name: directory parts are
    dropped and anything outside [A-Za-z0-9._-] becomes "-".
    """
    raw = (filename or "").strip()
    # strip both separators regardless of platform
    base = PureWindowsPath(PurePosixPath(raw).name).name
    base = _UNSAFE_CHARS.sub("-", base).strip("-")
    base = base.lstrip(".")
    if not base:
        raise ValidationError("Invalid file name")
    return base


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _verify_image(content: bytes, ext: str) -> None:
    if ext in _UNVERIFIED_EXTENSIONS:
        return
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValidationError("Uploaded file is not a valid image") from exc


@dataclass
class IngestResult:
    image_path: str
    filename: str
    patch: Optional[PatchResult] = None

    @property
    def document_changed(self) -> bool:
        return bool(self.patch and self.patch.changed)


class ImageIngestor:
    def __init__(
        self,
        locator: ContentLocator,
        patcher: DocumentPatcher,
        max_size_mb: int = 5,
    ) -> None:
        self.locator = locator
        self.patcher = patcher
        self.max_size_mb = max_size_mb

    def validate(self, content: bytes, filename: str | None) -> str:
        name = safe_filename(filename)
        ext = _extension(name)
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                "File type not allowed. Use " + ", ".join(sorted(e.upper() for e in ALLOWED_EXTENSIONS))
            )
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_size_mb * 1024 * 1024:
            raise ValidationError(f"Image is too large (max {self.max_size_mb}MB)")
        _verify_image(content, ext)
        return name

    def ingest(self, content: bytes, filename: str | None, section: str | None = None) -> IngestResult:
        name = self.validate(content, filename)
        # same name overwrites the existing asset
        self.locator.write_asset(name, content)
        image_path = self.locator.relative_asset(name)
        logger.info("image_stored path=%s bytes=%s", image_path, len(content))

        result = IngestResult(image_path=image_path, filename=name)
        if section and self.locator.index_path.exists():
            try:
                document = self.locator.read_document()
                result.patch = self.patcher.retarget_image(document, section, image_path)
            except ContentError as exc:
                exc.details.update(staged=True, imagePath=image_path)
                raise
            if result.patch.changed:
                self.locator.write_document(result.patch.document)
                logger.info("image_reference_updated section=%s path=%s", result.patch.section, image_path)
        return result


__all__ = ["ImageIngestor", "IngestResult", "safe_filename", "ALLOWED_EXTENSIONS"]
