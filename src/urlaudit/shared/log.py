"""Request-scoped logger adapter carrying component and request id fields."""

from __future__ import annotations

import logging
import uuid
from typing import Any, MutableMapping


class AuditLogger(logging.LoggerAdapter):
    """Adds ``component`` and ``request_id`` to every record.

    The fields are attached as record attributes (for structured handlers)
    and prefixed to the message (for the plain console format).

    One base adapter is built per process and handed to the orchestrator;
    ``for_request`` derives a per-request child from it.
    """

    def __init__(self, logger: logging.Logger, component: str, request_id: str = "-") -> None:
        super().__init__(logger, {"component": component, "request_id": request_id})

    @property
    def request_id(self) -> str:
        return self.extra["request_id"]

    def for_request(self, request_id: str | None = None) -> "AuditLogger":
        return AuditLogger(self.logger, self.extra["component"], request_id or uuid.uuid4().hex[:12])

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return f"[{self.extra['component']} {self.extra['request_id']}] {msg}", kwargs


def get_audit_logger(component: str = "audit") -> AuditLogger:
    return AuditLogger(logging.getLogger("urlaudit"), component)
