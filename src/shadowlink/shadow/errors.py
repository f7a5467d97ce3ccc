"""Structured error utilities for shadow pod workflows."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


class ShadowWorkflowError(RuntimeError):
    """Structured exception for shadow workflow failures."""

    def __init__(
        self,
        *,
        code: str,
        phase: str,
        message: str,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
        timestamp: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.phase = phase
        self.message = message
        self.retryable = retryable
        self.details = details or {}
        self.timestamp = timestamp or datetime.now(UTC).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs/status surfaces."""
        return {
            "code": self.code,
            "phase": self.phase,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        """Serialize the error as a compact JSON string."""
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=True)


class ShadowInconsistentError(ShadowWorkflowError):
    """A shadow pod exists without usable key material in its config map."""

    def __init__(
        self,
        pod: str,
        namespace: str,
        config_map: str,
        missing_fields: list[str] | None = None,
    ) -> None:
        if missing_fields:
            problem = f"config map {config_map} lacks {', '.join(missing_fields)}"
        else:
            problem = f"no config map {config_map}"
        super().__init__(
            code="shadow_inconsistent",
            phase="discovery",
            message=(
                f"Found shadow pod {pod} in namespace {namespace} but {problem}. "
                f"Please delete the pod {pod} manually"
            ),
            details={
                "pod": pod,
                "namespace": namespace,
                "config_map": config_map,
                "missing_fields": list(missing_fields or []),
            },
        )


class ShadowDuplicateError(ShadowWorkflowError):
    """More than one pod carries the labels of a single shadow."""

    def __init__(self, name: str, namespace: str, count: int) -> None:
        super().__init__(
            code="shadow_duplicate",
            phase="discovery",
            message=(
                f"Found {count} pods with name {name}, please make sure there is "
                f"only one in namespace {namespace}"
            ),
            details={"name": name, "namespace": namespace, "count": count},
        )


class ShadowReadyTimeoutError(ShadowWorkflowError):
    """The shadow pod did not become ready in time."""

    def __init__(
        self,
        pod: str,
        namespace: str,
        timeout: float,
        phase: str | None = None,
    ) -> None:
        if phase in ("Failed", "Succeeded", "Unknown"):
            code = "shadow_pod_failed"
            message = f"Shadow pod {pod} in namespace {namespace} entered phase {phase}"
        else:
            code = "shadow_ready_timeout"
            message = (
                f"Shadow pod {pod} in namespace {namespace} not ready after {timeout:g}s "
                f"(last phase: {phase or 'unknown'})"
            )
        super().__init__(
            code=code,
            phase="provision",
            message=message,
            retryable=code == "shadow_ready_timeout",
            details={"pod": pod, "namespace": namespace, "timeout": timeout, "pod_phase": phase},
        )


class ShadowRefConflictError(ShadowWorkflowError):
    """The reference counter kept changing underneath the update."""

    def __init__(self, pod: str, namespace: str, attempts: int) -> None:
        super().__init__(
            code="shadow_ref_conflict",
            phase="discovery",
            message=(
                f"Failed to increase reference count of shadow pod {pod} in namespace "
                f"{namespace} after {attempts} attempts"
            ),
            retryable=True,
            details={"pod": pod, "namespace": namespace, "attempts": attempts},
        )


def ensure_shadow_error(
    error: Exception,
    *,
    code: str = "shadow_unexpected_error",
    phase: str = "shadow_workflow",
    retryable: bool = False,
    details: dict[str, Any] | None = None,
) -> ShadowWorkflowError:
    """Normalize unknown exceptions into a structured shadow error."""
    if isinstance(error, ShadowWorkflowError):
        return error

    merged_details = dict(details or {})
    merged_details.setdefault("exception_type", type(error).__name__)

    return ShadowWorkflowError(
        code=code,
        phase=phase,
        message=str(error) or "Unknown shadow workflow error",
        retryable=retryable,
        details=merged_details,
    )


__all__ = [
    "ShadowDuplicateError",
    "ShadowInconsistentError",
    "ShadowReadyTimeoutError",
    "ShadowRefConflictError",
    "ShadowWorkflowError",
    "ensure_shadow_error",
]
