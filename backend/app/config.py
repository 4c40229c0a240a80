from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")

    REPO_PATH: str | None = Field(default=None)
    INDEX_FILE: str = Field(default="index.html")
    IMAGES_DIR: str = Field(default="images")

    GIT_REMOTE_URL: str | None = Field(default=None)
    GITHUB_TOKEN: str | None = Field(default=None)
    GITHUB_REPO_OWNER: str | None = Field(default=None)
    GITHUB_REPO_NAME: str | None = Field(default=None)
    GITHUB_BRANCH: str = Field(default="main")
    GIT_AUTHOR_NAME: str = Field(default="Site Editor")
    GIT_AUTHOR_EMAIL: str = Field(default="site-editor@localhost")

    RENDER_API_KEY: str | None = Field(default=None)
    RENDER_SERVICE_ID: str | None = Field(default=None)
    RENDER_API_URL: str = Field(default="https://api.render.com/v1")
    DEPLOY_FAILURE_FATAL: bool = Field(default=False)

    EXTERNAL_TIMEOUT_SECONDS: float = Field(default=30.0)
    LOCK_TIMEOUT_SECONDS: float = Field(default=60.0)
    MAX_UPLOAD_MB: int = Field(default=5)

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str | None = Field(default=None)

    @property
    def repo_root(self) -> Path | None:
        if not self.REPO_PATH:
            return None
        return Path(self.REPO_PATH).expanduser().resolve()

    @property
    def push_url(self) -> str | None:
        if self.GIT_REMOTE_URL:
            return self.GIT_REMOTE_URL
        if self.GITHUB_TOKEN and self.GITHUB_REPO_OWNER and self.GITHUB_REPO_NAME:
            return f"https://{self.GITHUB_TOKEN}@github.com/{self.GITHUB_REPO_OWNER}/{self.GITHUB_REPO_NAME}.git"
        return None

    @property
    def deploy_configured(self) -> bool:
        return bool(self.RENDER_API_KEY and self.RENDER_SERVICE_ID)

    @property
    def secrets(self) -> list[str]:
        # values that must never show up in logs or error messages
        return [s for s in (self.GITHUB_TOKEN, self.RENDER_API_KEY) if s]


settings = Settings()
