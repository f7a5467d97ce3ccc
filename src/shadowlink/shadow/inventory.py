"""Inventory of cluster objects managed by shadowlink."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from shadowlink.observability._logging import get_logger
from shadowlink.shadow.models import CONTROL_LABELS

if TYPE_CHECKING:
    from kubernetes import client

    from shadowlink.kubernetes.client import KubernetesInterface


log = get_logger(__name__)


class ControlledResources(NamedTuple):
    """Pods, deployments and services carrying the control label."""

    pods: list[client.V1Pod]
    deployments: list[client.V1Deployment]
    services: list[client.V1Service]


async def list_controlled_resources(
    k8s: KubernetesInterface, namespace: str
) -> ControlledResources:
    """List every object carrying the control label.

    Args:
        k8s: Platform client
        namespace: Namespace to search, empty for all visible namespaces

    Returns:
        ControlledResources: All three lists. The first failing query aborts
        the whole listing and its error propagates unchanged.
    """
    pods = await k8s.get_pods_by_label(dict(CONTROL_LABELS), namespace)
    deployments = await k8s.get_deployments_by_label(dict(CONTROL_LABELS), namespace)
    services = await k8s.get_services_by_label(dict(CONTROL_LABELS), namespace)
    log.debug(
        "controlled_resources_listed",
        namespace=namespace or "*",
        pods=len(pods),
        deployments=len(deployments),
        services=len(services),
    )
    return ControlledResources(pods=pods, deployments=deployments, services=services)


__all__ = ["ControlledResources", "list_controlled_resources"]
