"""shadowlink Shadow package.

Discovery, provisioning and reuse of shadow pods.
"""

from shadowlink.shadow.errors import (
    ShadowDuplicateError,
    ShadowInconsistentError,
    ShadowReadyTimeoutError,
    ShadowRefConflictError,
    ShadowWorkflowError,
    ensure_shadow_error,
)
from shadowlink.shadow.inventory import ControlledResources, list_controlled_resources
from shadowlink.shadow.keys import SSHCredential, SSHKeyPair, ShadowResult
from shadowlink.shadow.orchestrator import (
    ShadowOrchestrator,
    get_or_create_shadow,
    get_shadow_orchestrator,
)


__all__ = [
    "ControlledResources",
    "SSHCredential",
    "SSHKeyPair",
    "ShadowDuplicateError",
    "ShadowInconsistentError",
    "ShadowOrchestrator",
    "ShadowReadyTimeoutError",
    "ShadowRefConflictError",
    "ShadowResult",
    "ShadowWorkflowError",
    "ensure_shadow_error",
    "get_or_create_shadow",
    "get_shadow_orchestrator",
    "list_controlled_resources",
]
