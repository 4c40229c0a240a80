import io
import shutil
import threading
import time
from pathlib import Path

import pytest
from PIL import Image

from backend.app.config import Settings
from backend.app.services.content_locator import ContentLocator
from backend.app.services.content_service import ContentService
from backend.app.services.deploy_trigger import RenderDeployTrigger
from backend.app.services.document_patcher import DocumentPatcher
from backend.app.services.publisher import PublishResult


FIXTURES = Path(__file__).resolve().parent / "fixtures"


def make_settings(repo_root: Path | None, **overrides) -> Settings:
    values = {
        "REPO_PATH": str(repo_root) if repo_root else None,
        "GIT_REMOTE_URL": None,
        "GITHUB_TOKEN": None,
        "GITHUB_REPO_OWNER": None,
        "GITHUB_REPO_NAME": None,
        "GITHUB_BRANCH": "main",
        "RENDER_API_KEY": None,
        "RENDER_SERVICE_ID": None,
        "DEPLOY_FAILURE_FATAL": False,
        "LOCK_TIMEOUT_SECONDS": 10,
        "LOG_FILE": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakePublisher:
    """Records publish calls instead of shelling out to git."""

    def __init__(self, fail_with: Exception | None = None, delay: float = 0.0) -> None:
        self.fail_with = fail_with
        self.delay = delay
        self.messages = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def publish(self, message: str) -> PublishResult:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            self.messages.append(message)
            if self.fail_with is not None:
                raise self.fail_with
            return PublishResult(committed=True, pushed=True, branch="main", commit="abc123")
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fixture_html() -> str:
    return (FIXTURES / "index.html").read_text(encoding="utf-8")


@pytest.fixture
def site_repo(tmp_path) -> Path:
    root = tmp_path / "site"
    (root / "images").mkdir(parents=True)
    shutil.copy(FIXTURES / "index.html", root / "index.html")
    return root


@pytest.fixture
def settings(site_repo) -> Settings:
    return make_settings(site_repo)


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


def build_service(settings: Settings, publisher, deployer=None) -> ContentService:
    locator = ContentLocator.from_settings(settings)
    return ContentService(
        settings=settings,
        locator=locator,
        patcher=DocumentPatcher(),
        publisher=publisher,
        deployer=deployer or RenderDeployTrigger(settings),
    )


@pytest.fixture
def service(settings, publisher) -> ContentService:
    return build_service(settings, publisher)


def png_bytes(size=(4, 4), color=(255, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()
