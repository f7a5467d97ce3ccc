"""shadowlink Kubernetes package.

Platform client consumed by the shadow workflow.
"""

from shadowlink.kubernetes.client import (
    KubernetesClient,
    KubernetesInterface,
    build_shadow_pod,
    is_pod_ready,
    label_selector,
)


__all__ = [
    "KubernetesClient",
    "KubernetesInterface",
    "build_shadow_pod",
    "is_pod_ready",
    "label_selector",
]
