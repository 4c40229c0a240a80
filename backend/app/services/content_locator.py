from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from ..config import Settings
from ..errors import ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentLocator:
    repo_root: Path
    index_path: Path
    images_dir: Path
    images_prefix: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentLocator":
        root = settings.repo_root
        if root is None:
            raise ConfigurationError("REPO_PATH is not configured")
        if not root.is_dir():
            raise ConfigurationError(f'Repo path "{root}" does not exist')
        images_dir = root / settings.IMAGES_DIR
        images_dir.mkdir(parents=True, exist_ok=True)
        return cls(
            repo_root=root,
            index_path=root / settings.INDEX_FILE,
            images_dir=images_dir,
            images_prefix=Path(settings.IMAGES_DIR).as_posix().strip("/"),
        )

    def read_document(self) -> str:
        if not self.index_path.exists():
            raise NotFoundError(f"{self.index_path.name} not found in {self.repo_root}")
        return self.index_path.read_text(encoding="utf-8")

    def write_document(self, html: str) -> None:
        self._atomic_write(self.index_path, html.encode("utf-8"))

    def asset_path(self, filename: str) -> Path:
        return self.images_dir / filename

    def relative_asset(self, filename: str) -> str:
        return f"{self.images_prefix}/{filename}"

    def write_asset(self, filename: str, content: bytes) -> Path:
        path = self.asset_path(filename)
        self._atomic_write(path, content)
        return path

    def _atomic_write(self, path: Path, content: bytes) -> None:
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            with open(tmp_path, "wb") as fh:
                fh.write(content)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        logger.debug("file_write_ok path=%s bytes=%s", path, len(content))


__all__ = ["ContentLocator"]
