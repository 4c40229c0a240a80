from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..config import Settings
from ..errors import ContentError, DeployTriggerError
from .content_locator import ContentLocator
from .deploy_trigger import DeployResult, RenderDeployTrigger
from .document_patcher import DocumentPatcher
from .field_map import LocatorTable
from .image_ingestor import ImageIngestor
from .publisher import GitPublisher, PublishResult
from .repo_lock import repository_lock

logger = logging.getLogger(__name__)


class ContentService:
    """
    Runs one edit end to end while holding the repository lock:
    patch or ingest, write to disk, publish, then trigger the deploy.
    """

    def __init__(
        self,
        settings: Settings,
        locator: ContentLocator,
        patcher: DocumentPatcher,
        publisher: GitPublisher,
        deployer: RenderDeployTrigger,
    ) -> None:
        self.settings = settings
        self.locator = locator
        self.patcher = patcher
        self.publisher = publisher
        self.deployer = deployer
        self.ingestor = ImageIngestor(locator, patcher, max_size_mb=settings.MAX_UPLOAD_MB)

    @classmethod
    def from_settings(cls, settings: Settings, table: LocatorTable | None = None) -> "ContentService":
        locator = ContentLocator.from_settings(settings)
        return cls(
            settings=settings,
            locator=locator,
            patcher=DocumentPatcher(table),
            publisher=GitPublisher(locator.repo_root, settings),
            deployer=RenderDeployTrigger(settings),
        )

    def _lock(self):
        return repository_lock(self.locator.repo_root, self.settings.LOCK_TIMEOUT_SECONDS)

    def _publish(self, message: str, staged: bool) -> PublishResult:
        try:
            return self.publisher.publish(message)
        except ContentError as exc:
            exc.details.setdefault("staged", staged)
            raise

    def _deploy(self, published: PublishResult) -> DeployResult:
        if not published.committed:
            return DeployResult(triggered=False, skipped=True)
        try:
            return self.deployer.trigger()
        except DeployTriggerError as exc:
            if self.settings.DEPLOY_FAILURE_FATAL:
                exc.details.update(staged=True, published=True)
                raise
            logger.warning("deploy_failed_nonfatal error=%s", exc.message)
            return DeployResult(triggered=False, error=exc.message)

    @staticmethod
    def _summary(published: PublishResult, deploy: DeployResult, done: str) -> str:
        if not published.committed:
            return f"{done}; no changes to publish"
        if deploy.error:
            return f"{done} and pushed, but deploy trigger failed"
        if deploy.triggered:
            return f"{done} and deployed successfully"
        return f"{done} and pushed to remote"

    def update_content(self, section: str, content: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock():
            document = self.locator.read_document()
            patched = self.patcher.patch(document, section, content)
            if patched.changed:
                self.locator.write_document(patched.document)
            logger.info(
                "content_patch_ok section=%s updated=%s skipped=%s ignored=%s",
                patched.section,
                len(patched.updated),
                len(patched.skipped),
                len(patched.ignored),
            )
            published = self._publish(f"Update {patched.section} section content", staged=patched.changed)
            deploy = self._deploy(published)

        return {
            "message": self._summary(published, deploy, "Content updated"),
            "published": published.pushed,
            "committed": published.committed,
            "commit": published.commit,
            "deploy": deploy.as_dict(),
            **patched.as_dict(),
        }

    def upload_image(self, content: bytes, filename: Optional[str], section: Optional[str] = None) -> Dict[str, Any]:
        with self._lock():
            ingested = self.ingestor.ingest(content, filename, section)
            target = ingested.patch.section if ingested.patch else None
            message = f"Update {target} image" if target else f"Upload image {ingested.filename}"
            try:
                published = self._publish(message, staged=True)
                deploy = self._deploy(published)
            except ContentError as exc:
                exc.details.setdefault("imagePath", ingested.image_path)
                raise

        return {
            "message": self._summary(published, deploy, "Image uploaded"),
            "imagePath": ingested.image_path,
            "documentUpdated": ingested.document_changed,
            "published": published.pushed,
            "committed": published.committed,
            "commit": published.commit,
            "deploy": deploy.as_dict(),
        }


__all__ = ["ContentService"]
