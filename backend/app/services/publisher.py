from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import Settings
from ..errors import ConfigurationError, PublishError

logger = logging.getLogger(__name__)

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s]+@", re.IGNORECASE)


def redact(text: str | None, secrets: Iterable[str] = ()) -> str:
    out = _URL_CREDENTIALS.sub(r"\g<scheme>***@", text or "")
    for secret in secrets:
        if secret:
            out = out.replace(secret, "***")
    return out


@dataclass
class PublishResult:
    committed: bool
    pushed: bool
    branch: str
    commit: Optional[str] = None


class GitPublisher:
    """
    Stage, commit and push the whole working tree of the site repository.

    Steps run in order and are never retried; a failure leaves the working
    tree as the failing git command left it.
    """

    def __init__(self, repo_root: Path, settings: Settings, git_bin: str = "git") -> None:
        self.repo_root = Path(repo_root)
        self.settings = settings
        self.git_bin = git_bin
        self.timeout = settings.EXTERNAL_TIMEOUT_SECONDS

    def _remote(self) -> str:
        url = self.settings.push_url
        if not url:
            raise ConfigurationError(
                "Push remote is not configured (set GIT_REMOTE_URL or GITHUB_TOKEN, GITHUB_REPO_OWNER, GITHUB_REPO_NAME)"
            )
        return url

    def _subprocess(self, cmd: List[str]) -> subprocess.CompletedProcess:
        # credential prompts would block until the timeout
        return subprocess.run(
            cmd,
            cwd=str(self.repo_root),
            capture_output=True,
            text=True,
            timeout=self.timeout,
            stdin=subprocess.DEVNULL,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )

    def _run(self, step: str, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [
            self.git_bin,
            "-c",
            f"user.name={self.settings.GIT_AUTHOR_NAME}",
            "-c",
            f"user.email={self.settings.GIT_AUTHOR_EMAIL}",
            *args,
        ]
        secrets = self.settings.secrets
        try:
            proc = self._subprocess(cmd)
        except FileNotFoundError as exc:
            logger.error("git_not_found bin=%s", self.git_bin)
            raise PublishError("git executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            logger.error("git_timeout step=%s timeout=%s", step, self.timeout)
            raise PublishError(f"git {step} timed out after {self.timeout:g}s") from exc
        if proc.returncode != 0:
            err = redact((proc.stderr or proc.stdout or "").strip(), secrets)
            logger.warning("git_step_failed step=%s code=%s err=%s", step, proc.returncode, err)
            raise PublishError(f"git {step} failed: {err or 'exit code ' + str(proc.returncode)}")
        return proc

    def _has_staged_changes(self) -> bool:
        cmd = [self.git_bin, "diff", "--cached", "--quiet"]
        try:
            proc = self._subprocess(cmd)
        except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
            raise PublishError("git diff failed") from exc
        # --quiet exits 1 when there are differences
        if proc.returncode not in (0, 1):
            raise PublishError(f"git diff failed: {redact(proc.stderr, self.settings.secrets).strip()}")
        return proc.returncode == 1

    def publish(self, message: str) -> PublishResult:
        remote = self._remote()
        branch = self.settings.GITHUB_BRANCH or "main"

        self._run("add", ["add", "-A"])
        if not self._has_staged_changes():
            logger.info("publish_nothing_to_commit message=%r", message)
            return PublishResult(committed=False, pushed=False, branch=branch)

        self._run("commit", ["commit", "-m", message])
        sha = self._run("rev-parse", ["rev-parse", "HEAD"]).stdout.strip()
        self._run("push", ["push", remote, f"HEAD:{branch}"])
        logger.info("publish_ok commit=%s branch=%s remote=%s", sha[:12], branch, redact(remote, self.settings.secrets))
        return PublishResult(committed=True, pushed=True, branch=branch, commit=sha)


__all__ = ["GitPublisher", "PublishResult", "redact"]
