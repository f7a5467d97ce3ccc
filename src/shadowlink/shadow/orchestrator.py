"""Shadow pod orchestration.

Decides whether a shared shadow pod can be reused or a new one has to be
provisioned, and hands back the address and SSH credential to connect with.

Reuse is not guarded by a lock: two clients creating the same shadow for the
first time at the same moment can both miss it and race on creation. One of
them then gets a 409 conflict from the API server to retry, or a duplicate
pod shows up and is reported by the next discovery. Serialize first-time
creation per shadow name outside of shadowlink if that matters.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from shadowlink.config.settings import Settings, get_settings
from shadowlink.observability._logging import get_logger
from shadowlink.observability._metrics import shadow_errors_total, shadow_pods_reused_total
from shadowlink.shadow.discovery import try_get_existing_shadow
from shadowlink.shadow.errors import ShadowWorkflowError
from shadowlink.shadow.inventory import ControlledResources, list_controlled_resources
from shadowlink.shadow.keys import ShadowResult, build_shadow_result, private_key_path
from shadowlink.shadow.models import (
    CONTROL_LABELS,
    USER_ANNOTATION,
    PodMetaAndSpec,
    ResourceMeta,
    SSHKeyMeta,
)
from shadowlink.shadow.provisioner import create_shadow
from shadowlink.utils.meta import get_local_user_name, merge_maps, string_to_map

if TYPE_CHECKING:
    from shadowlink.kubernetes.client import KubernetesInterface


log = get_logger(__name__)


def build_resource_meta(
    name: str,
    settings: Settings,
    labels: Mapping[str, str] | None,
    annotations: Mapping[str, str] | None,
    local_user: str,
) -> ResourceMeta:
    """Labels and annotations of a shadow, configured extras applied last."""
    return ResourceMeta(
        name=name,
        namespace=settings.namespace,
        labels=merge_maps(CONTROL_LABELS, labels, string_to_map(settings.shadow.with_labels)),
        annotations=merge_maps(
            annotations,
            string_to_map(settings.shadow.with_annotations),
            {USER_ANNOTATION: local_user},
        ),
    )


async def get_or_create_shadow(
    k8s: KubernetesInterface,
    name: str,
    settings: Settings,
    labels: Mapping[str, str] | None = None,
    annotations: Mapping[str, str] | None = None,
    envs: Mapping[str, str] | None = None,
    *,
    local_user: str | None = None,
) -> ShadowResult:
    """Reuse the shared shadow called ``name`` or provision a new one.

    Args:
        k8s: Platform client
        name: Shadow name, also the config map name and key file stem
        settings: Namespace, image, sharing mode and extra labels/annotations
        labels: Base labels of the shadow pod
        annotations: Base annotations of the shadow pod
        envs: Environment variables of the shadow container
        local_user: Identity stamped into the ownership annotation
            (default: the user running this process)

    Returns:
        ShadowResult: Pod IP, pod name and SSH credential

    Raises:
        ShadowWorkflowError: Inconsistent or duplicate shadow, readiness timeout
        kubernetes.client.ApiException: Any platform error, unchanged
    """
    resource_meta = build_resource_meta(
        name,
        settings,
        labels,
        annotations,
        local_user if local_user is not None else get_local_user_name(),
    )
    ssh_key_meta = SSHKeyMeta(
        config_map_name=name,
        private_key_path=private_key_path(name, settings.shadow.key_dir),
    )

    try:
        if settings.shadow.share:
            found = await try_get_existing_shadow(k8s, resource_meta, ssh_key_meta)
            if found is not None:
                shadow_pods_reused_total.labels(namespace=resource_meta.namespace).inc()
                return build_shadow_result(
                    found.pod,
                    found.key_pair,
                    remote_host=settings.shadow.ssh_host,
                    port=settings.shadow.ssh_port,
                    username=settings.shadow.ssh_username,
                )

        meta_and_spec = PodMetaAndSpec(
            meta=resource_meta,
            image=settings.shadow.image,
            envs=dict(envs or {}),
        )
        return await create_shadow(k8s, meta_and_spec, ssh_key_meta, settings)
    except ShadowWorkflowError as e:
        shadow_errors_total.labels(reason=e.code).inc()
        log.error("shadow_workflow_failed", shadow=name, code=e.code, error=e.message)
        raise


class ShadowOrchestrator:
    """Entry point bundling a platform client with settings."""

    def __init__(self, k8s: KubernetesInterface, settings: Settings | None = None) -> None:
        self.k8s = k8s
        self.settings = settings or get_settings()

    async def list_controlled_resources(self, namespace: str | None = None) -> ControlledResources:
        """Pods, deployments and services managed by shadowlink."""
        return await list_controlled_resources(
            self.k8s, self.settings.namespace if namespace is None else namespace
        )

    async def get_or_create_shadow(
        self,
        name: str,
        labels: Mapping[str, str] | None = None,
        annotations: Mapping[str, str] | None = None,
        envs: Mapping[str, str] | None = None,
        *,
        local_user: str | None = None,
    ) -> ShadowResult:
        """See :func:`get_or_create_shadow`."""
        return await get_or_create_shadow(
            self.k8s,
            name,
            self.settings,
            labels,
            annotations,
            envs,
            local_user=local_user,
        )


# Module-level singleton
_orchestrator: ShadowOrchestrator | None = None


def get_shadow_orchestrator() -> ShadowOrchestrator:
    """Get or create the orchestrator backed by the real cluster."""
    global _orchestrator  # noqa: PLW0603
    if _orchestrator is None:
        from shadowlink.kubernetes.client import KubernetesClient

        settings = get_settings()
        _orchestrator = ShadowOrchestrator(
            KubernetesClient(
                settings.kubernetes,
                ref_update_retries=settings.shadow.ref_update_retries,
            ),
            settings,
        )
    return _orchestrator


__all__ = [
    "ShadowOrchestrator",
    "build_resource_meta",
    "get_or_create_shadow",
    "get_shadow_orchestrator",
]
