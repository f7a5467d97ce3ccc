"""Provisioning of a new shadow pod."""

from __future__ import annotations

import time
from dataclasses import replace
from typing import TYPE_CHECKING

from shadowlink.observability._logging import get_logger
from shadowlink.observability._metrics import (
    shadow_pod_ready_duration_seconds,
    shadow_pods_created_total,
)
from shadowlink.shadow.keys import ShadowResult, build_shadow_result, generate_key_pair
from shadowlink.shadow.models import NAME_LABEL, PodMetaAndSpec, SSHKeyMeta
from shadowlink.utils.meta import get_outbound_ip

if TYPE_CHECKING:
    from kubernetes import client

    from shadowlink.config.settings import Settings
    from shadowlink.kubernetes.client import KubernetesInterface


log = get_logger(__name__)


async def create_shadow(
    k8s: KubernetesInterface,
    meta_and_spec: PodMetaAndSpec,
    ssh_key_meta: SSHKeyMeta,
    settings: Settings,
) -> ShadowResult:
    """Create the config map and pod of a new shadow and wait until it is ready.

    Objects created before a failure are left in place; a config map without
    a pod has to be cleaned up by the operator.

    Args:
        k8s: Platform client
        meta_and_spec: Identity, image and environment of the shadow pod
        ssh_key_meta: Config map name and local private key path
        settings: Readiness bound and credential defaults

    Returns:
        ShadowResult: Pod IP, pod name and SSH credential
    """
    meta = meta_and_spec.meta
    key_pair = generate_key_pair(ssh_key_meta.private_key_path)

    config_map = await k8s.create_config_map_with_ssh_key(
        meta.labels, ssh_key_meta.config_map_name, meta.namespace, key_pair
    )
    log.info(
        "shadow_config_map_created",
        config_map=config_map.metadata.name,
        namespace=meta.namespace,
    )

    pod = await _create_and_get_pod(k8s, meta_and_spec, ssh_key_meta.config_map_name, settings)
    shadow_pods_created_total.labels(namespace=meta.namespace).inc()
    return build_shadow_result(
        pod,
        key_pair,
        remote_host=settings.shadow.ssh_host,
        port=settings.shadow.ssh_port,
        username=settings.shadow.ssh_username,
    )


async def _create_and_get_pod(
    k8s: KubernetesInterface,
    meta_and_spec: PodMetaAndSpec,
    config_map_name: str,
    settings: Settings,
) -> client.V1Pod:
    log.debug("client_address", address=get_outbound_ip())
    meta = meta_and_spec.meta
    labeled = replace(
        meta_and_spec,
        meta=replace(meta, labels={**meta.labels, NAME_LABEL: meta.name}),
    )

    await k8s.create_shadow_pod(labeled, config_map_name)
    log.info("shadow_pod_deploying", pod=meta.name, namespace=meta.namespace)

    started = time.monotonic()
    pod = await k8s.wait_pod_ready(
        meta.name,
        meta.namespace,
        settings.shadow.ready_timeout,
        settings.shadow.ready_poll_interval,
    )
    shadow_pod_ready_duration_seconds.observe(time.monotonic() - started)
    return pod


__all__ = ["create_shadow"]
