"""Discovery of an existing shadow pod that can be shared."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from shadowlink.observability._logging import get_logger
from shadowlink.shadow.errors import ShadowDuplicateError, ShadowInconsistentError
from shadowlink.shadow.keys import SSHKeyPair, key_pair_from_config_map, write_private_key
from shadowlink.shadow.models import (
    NAME_LABEL,
    SSH_AUTH_KEY,
    SSH_AUTH_PRIVATE_KEY,
    ResourceMeta,
    SSHKeyMeta,
)

if TYPE_CHECKING:
    from kubernetes import client

    from shadowlink.kubernetes.client import KubernetesInterface


log = get_logger(__name__)


class DiscoveredShadow(NamedTuple):
    """A reusable shadow pod and the key material stored with it."""

    pod: client.V1Pod
    key_pair: SSHKeyPair


def shadow_selector(resource_meta: ResourceMeta) -> dict[str, str]:
    """Full label set a shadow pod is created with."""
    return {**resource_meta.labels, NAME_LABEL: resource_meta.name}


async def try_get_existing_shadow(
    k8s: KubernetesInterface,
    resource_meta: ResourceMeta,
    ssh_key_meta: SSHKeyMeta,
) -> DiscoveredShadow | None:
    """Find a shadow pod to reuse and take a reference on it.

    Args:
        k8s: Platform client
        resource_meta: Name, namespace and labels of the wanted shadow
        ssh_key_meta: Config map name and local private key path

    Returns:
        DiscoveredShadow | None: The shadow, or None when there is nothing to
        reuse and a new one should be provisioned.

    Raises:
        ShadowInconsistentError: The pod exists but its config map is missing
            or lacks key fields
        ShadowDuplicateError: More than one pod matches the shadow's labels
    """
    name, namespace = resource_meta.name, resource_meta.namespace

    if await k8s.get_pod(name, namespace) is None:
        log.debug("shadow_pod_absent", pod=name, namespace=namespace)
        return None

    config_map = await k8s.get_config_map(ssh_key_meta.config_map_name, namespace)
    if config_map is None:
        raise ShadowInconsistentError(name, namespace, ssh_key_meta.config_map_name)

    data = config_map.data or {}
    missing = [field for field in (SSH_AUTH_KEY, SSH_AUTH_PRIVATE_KEY) if not data.get(field)]
    if missing:
        raise ShadowInconsistentError(name, namespace, ssh_key_meta.config_map_name, missing)

    key_pair = key_pair_from_config_map(data, ssh_key_meta.private_key_path)

    # The label query, not the name lookup, decides whether the shadow exists
    pods = await k8s.get_pods_by_label(shadow_selector(resource_meta), namespace)
    if len(pods) > 1:
        raise ShadowDuplicateError(name, namespace, len(pods))
    if not pods:
        log.debug("shadow_pod_labels_mismatch", pod=name, namespace=namespace)
        return None

    pod = pods[0]
    write_private_key(key_pair.private_key_path, key_pair.private_key)
    await k8s.increase_ref(pod.metadata.name, namespace)
    log.info("shadow_pod_reused", pod=pod.metadata.name, namespace=namespace)
    return DiscoveredShadow(pod=pod, key_pair=key_pair)


__all__ = ["DiscoveredShadow", "shadow_selector", "try_get_existing_shadow"]
