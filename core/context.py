"""
Core Module - Correlation Context.

============================================================
RESPONSIBILITY
============================================================
Carries the correlation identifier and current step of one
initializer run. Passed explicitly to every component; never
stored in a global.

============================================================
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple


def new_correlation_id() -> str:
    """36-character UUID4 string."""
    return str(uuid.uuid4())


@dataclass
class CorrelationContext:
    """Run-scoped correlation state."""

    correlation_id: str = field(default_factory=new_correlation_id)
    step: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = field(default_factory=dict)

    def enter_step(self, step: str) -> None:
        self.step = step

    def add_data(self, key: str, value: Any) -> "CorrelationContext":
        self.data[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "correlation_id": self.correlation_id,
            "step": self.step,
            "start_time": self.started_at.isoformat(),
        }
        result.update(self.data)
        return result

    def logger(self, name: str, component: Optional[str] = None) -> "ContextLogger":
        """Logger that stamps this context on every record."""
        return ContextLogger(logging.getLogger(name), self, component or name)


class ContextLogger(logging.LoggerAdapter):
    """
    LoggerAdapter that injects correlation_id, step and component.

    Structured details go in ``fields``:

        log.info("Migrations applied", fields={"action": "apply", "new_version": 3})
    """

    def __init__(self, logger: logging.Logger, context: CorrelationContext, component: str):
        super().__init__(logger, {})
        self.context = context
        self.component = component

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields: Dict[str, Any] = {
            "correlation_id": self.context.correlation_id,
            "component": self.component,
        }
        if self.context.step:
            fields["step"] = self.context.step
        fields.update(kwargs.pop("fields", None) or {})

        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = fields
        kwargs["extra"] = extra
        return msg, kwargs
