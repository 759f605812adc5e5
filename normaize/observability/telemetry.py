"""
Per-operation telemetry with batched structured logging.

An OperationContext collects steps in memory while an operation runs;
log_summary() then emits a single structured entry with every step,
the elapsed time and the outcome.

Usage:
    telemetry = StructuredLogger()
    context = telemetry.create_context("process_file", metadata={"file_path": path})
    telemetry.log_step(context, "Parsing started")
    ...
    telemetry.log_summary(context, success=True)
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from normaize.core.constants import ANONYMOUS_USER
from normaize.observability.logger import get_logger


class OperationStep(BaseModel):
    """A single recorded step of an operation."""

    description: str
    data: dict[str, Any] | None = None
    elapsed_ms: float = 0.0


class OperationContext(BaseModel):
    """
    Telemetry carrier for one operation (ephemeral, one per call).

    Attributes:
        operation_name: Name of the operation (e.g. "process_file")
        correlation_id: Identifier shared by every log entry of the operation
        user_id: Acting user, or "anonymous"
        metadata: Free-form key/value bag included in the summary
        steps: Ordered list of recorded steps
        started_at: Wall-clock start time
    """

    operation_name: str = Field(..., min_length=1)
    correlation_id: str = Field(..., min_length=1)
    user_id: str = ANONYMOUS_USER
    metadata: dict[str, Any] = Field(default_factory=dict)
    steps: list[OperationStep] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    start_perf: float = Field(default_factory=time.perf_counter, exclude=True)

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the context was created."""
        return (time.perf_counter() - self.start_perf) * 1000

    @property
    def step_descriptions(self) -> list[str]:
        return [step.description for step in self.steps]


class StructuredLogger:
    """
    Creates operation contexts and emits their batched summaries.
    """

    def __init__(self, logger: logging.Logger | None = None):
        """
        Args:
            logger: Logger receiving immediate steps and summaries
                (defaults to the "normaize.telemetry" JSON logger)
        """
        self.logger = logger or get_logger("normaize.telemetry")

    def create_context(
        self,
        operation: str,
        correlation_id: str | None = None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> OperationContext:
        """
        Create a context for a new operation.

        A fresh correlation id is generated when none is supplied.
        """
        return OperationContext(
            operation_name=operation,
            correlation_id=correlation_id or str(uuid.uuid4()),
            user_id=user_id or ANONYMOUS_USER,
            metadata=dict(metadata or {}),
        )

    def log_step(
        self,
        context: OperationContext,
        description: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Append a step to the context without emitting a log line."""
        context.steps.append(
            OperationStep(
                description=description,
                data=dict(data) if data else None,
                elapsed_ms=round(context.elapsed_ms, 3),
            )
        )

    def log_immediate_step(
        self,
        context: OperationContext,
        description: str,
        data: dict[str, Any] | None = None,
        level: int = logging.INFO,
    ) -> None:
        """Append a step and emit it right away (for critical steps)."""
        self.log_step(context, description, data)
        self.logger.log(
            level,
            f"{context.operation_name}: {description}",
            extra={
                "correlation_id": context.correlation_id,
                "operation": context.operation_name,
                "user_id": context.user_id,
                "step_data": data or {},
            },
        )

    def log_summary(
        self,
        context: OperationContext,
        success: bool,
        error: str | None = None,
    ) -> dict[str, Any]:
        """
        Emit one consolidated entry for the operation.

        Returns:
            The structured fields attached to the log entry
        """
        summary = {
            "correlation_id": context.correlation_id,
            "operation": context.operation_name,
            "user_id": context.user_id,
            "metadata": context.metadata,
            "steps": [step.model_dump(exclude_none=True) for step in context.steps],
            "step_count": len(context.steps),
            "duration_ms": round(context.elapsed_ms, 3),
            "status": "success" if success else "error",
        }
        if error:
            summary["error_message"] = error

        if success:
            self.logger.info(f"Operation completed: {context.operation_name}", extra=summary)
        else:
            self.logger.error(f"Operation failed: {context.operation_name}", extra=summary)

        return summary
