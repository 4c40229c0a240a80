from __future__ import annotations

from typing import Any, Dict

from fastapi import status


class ContentError(Exception):
    """
    Base error for content operations; carries the HTTP status the request
    handlers answer with.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Content operation failed") -> None:
        self.message = message
        # extra envelope fields, e.g. staged=True once disk state has changed
        self.details: Dict[str, Any] = {}
        super().__init__(self.message)


class ValidationError(ContentError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ContentError):
    pass


class PatchError(ContentError):
    pass


class PublishError(ContentError):
    pass


class ConfigurationError(PublishError):
    pass


class DeployTriggerError(ContentError):
    pass


class RepositoryBusyError(ContentError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


__all__ = [
    "ContentError",
    "ValidationError",
    "NotFoundError",
    "PatchError",
    "PublishError",
    "ConfigurationError",
    "DeployTriggerError",
    "RepositoryBusyError",
]
