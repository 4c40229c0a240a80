from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from ..errors import DeployTriggerError
from .publisher import redact

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    triggered: bool
    skipped: bool = False
    deploy_id: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "triggered": self.triggered,
            "skipped": self.skipped,
            "deployId": self.deploy_id,
            "error": self.error,
        }


class RenderDeployTrigger:
    def __init__(self, settings: Settings, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        self.transport = transport

    @property
    def configured(self) -> bool:
        return self.settings.deploy_configured

    def trigger(self) -> DeployResult:
        if not self.configured:
            logger.info("deploy_skipped reason=not_configured")
            return DeployResult(triggered=False, skipped=True)

        base = self.settings.RENDER_API_URL.rstrip("/")
        url = f"{base}/services/{self.settings.RENDER_SERVICE_ID}/deploys"
        headers = {
            "Authorization": f"Bearer {self.settings.RENDER_API_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        timeout = httpx.Timeout(self.settings.EXTERNAL_TIMEOUT_SECONDS)
        try:
            with httpx.Client(timeout=timeout, transport=self.transport) as client:
                resp = client.post(url, json={}, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = redact(exc.response.text[:200], self.settings.secrets)
            logger.warning("deploy_failed status=%s body=%s", exc.response.status_code, body)
            raise DeployTriggerError(f"Render deploy failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("deploy_failed error=%s", type(exc).__name__)
            raise DeployTriggerError(f"Render deploy request failed: {type(exc).__name__}") from exc

        deploy_id = None
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            deploy_id = data.get("id")
        logger.info("deploy_triggered service=%s deploy_id=%s", self.settings.RENDER_SERVICE_ID, deploy_id)
        return DeployResult(triggered=True, deploy_id=deploy_id)


__all__ = ["RenderDeployTrigger", "DeployResult"]
