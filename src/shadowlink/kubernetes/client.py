"""Kubernetes platform client used by the shadow workflow.

The shadow workflow only talks to the cluster through ``KubernetesInterface``;
``KubernetesClient`` implements it on top of the official ``kubernetes``
SDK, running blocking SDK calls in a worker thread.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, cast

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from shadowlink.config.settings import KubernetesSettings, get_settings
from shadowlink.observability._logging import get_logger
from shadowlink.shadow.errors import ShadowReadyTimeoutError, ShadowRefConflictError
from shadowlink.shadow.keys import SSHKeyPair
from shadowlink.shadow.models import (
    REF_COUNT_ANNOTATION,
    SSH_AUTH_KEY,
    SSH_AUTH_PRIVATE_KEY,
    PodMetaAndSpec,
)


log = get_logger(__name__)

# HTTP Status codes
HTTP_CONFLICT = 409
HTTP_NOT_FOUND = 404

SHADOW_CONTAINER_NAME = "standalone"
SSH_VOLUME_NAME = "ssh-public-key"
SSH_MOUNT_PATH = "/root/.ssh"
SSH_CONTAINER_PORT = 22
DEFAULT_REF_UPDATE_RETRIES = 5
POD_TERMINAL_PHASES = ("Failed", "Succeeded", "Unknown")


class KubernetesInterface(Protocol):
    """Cluster operations the shadow workflow depends on."""

    async def get_pod(self, name: str, namespace: str) -> client.V1Pod | None: ...

    async def get_pods_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Pod]: ...

    async def get_deployments_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Deployment]: ...

    async def get_services_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Service]: ...

    async def get_config_map(self, name: str, namespace: str) -> client.V1ConfigMap | None: ...

    async def create_config_map_with_ssh_key(
        self,
        labels: dict[str, str],
        name: str,
        namespace: str,
        key_pair: SSHKeyPair,
    ) -> client.V1ConfigMap: ...

    async def create_shadow_pod(
        self, meta_and_spec: PodMetaAndSpec, config_map_name: str
    ) -> client.V1Pod: ...

    async def wait_pod_ready(
        self, name: str, namespace: str, timeout: float, interval: float
    ) -> client.V1Pod: ...

    async def increase_ref(self, name: str, namespace: str) -> None: ...


def label_selector(labels: dict[str, str] | None) -> str | None:
    """Render an equality-based label selector."""
    if not labels:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def is_pod_ready(pod: client.V1Pod) -> bool:
    """Running with every container reporting ready."""
    status = pod.status
    if status is None or status.phase != "Running":
        return False
    return all(cs.ready for cs in status.container_statuses or [])


def build_shadow_pod(meta_and_spec: PodMetaAndSpec, config_map_name: str) -> client.V1Pod:
    """Pod manifest for a shadow, mounting the public key from its config map."""
    meta = meta_and_spec.meta
    annotations = dict(meta.annotations)
    annotations[REF_COUNT_ANNOTATION] = "1"
    env = [client.V1EnvVar(name=k, value=v) for k, v in sorted(meta_and_spec.envs.items())]

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=meta.name,
            namespace=meta.namespace,
            labels=dict(meta.labels),
            annotations=annotations,
        ),
        spec=client.V1PodSpec(
            containers=[
                client.V1Container(
                    name=SHADOW_CONTAINER_NAME,
                    image=meta_and_spec.image,
                    image_pull_policy="Always",
                    env=env or None,
                    ports=[client.V1ContainerPort(container_port=SSH_CONTAINER_PORT)],
                    volume_mounts=[
                        client.V1VolumeMount(name=SSH_VOLUME_NAME, mount_path=SSH_MOUNT_PATH)
                    ],
                )
            ],
            volumes=[
                client.V1Volume(
                    name=SSH_VOLUME_NAME,
                    config_map=client.V1ConfigMapVolumeSource(
                        name=config_map_name,
                        items=[client.V1KeyToPath(key=SSH_AUTH_KEY, path="authorized_keys")],
                    ),
                )
            ],
        ),
    )


class KubernetesClient:
    """``KubernetesInterface`` backed by the official Kubernetes client."""

    def __init__(
        self,
        settings: KubernetesSettings | None = None,
        *,
        api_client: client.ApiClient | None = None,
        ref_update_retries: int = DEFAULT_REF_UPDATE_RETRIES,
    ) -> None:
        """Initialize API clients.

        Args:
            settings: Kubernetes connection settings (default: cached settings)
            api_client: Preconfigured API client, skips kubeconfig loading
            ref_update_retries: Attempts for the optimistic ref-count update
        """
        self._settings = settings or get_settings().kubernetes
        self._api_client = api_client or self._load_api_client()
        self.core_api = client.CoreV1Api(self._api_client)
        self.apps_api = client.AppsV1Api(self._api_client)
        self.ref_update_retries = ref_update_retries

    def _load_api_client(self) -> client.ApiClient:
        """Load Kubernetes config into a dedicated ApiClient."""
        config_obj = client.Configuration()
        if self._settings.in_cluster:
            config.load_incluster_config(client_configuration=config_obj)
            log.info("k8s_config_loaded", mode="in_cluster")
        else:
            config.load_kube_config(
                config_file=self._settings.kubeconfig_path,
                context=self._settings.context,
                client_configuration=config_obj,
            )
            log.info("k8s_config_loaded", mode="kubeconfig", context=self._settings.context)
        return client.ApiClient(config_obj)

    async def _call_api(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run blocking Kubernetes client calls in a thread."""
        kwargs.setdefault("_request_timeout", self._settings.api_timeout)
        return await asyncio.to_thread(func, *args, **kwargs)

    async def get_pod(self, name: str, namespace: str) -> client.V1Pod | None:
        """Read a pod, ``None`` if it does not exist."""
        try:
            return cast(
                client.V1Pod,
                await self._call_api(self.core_api.read_namespaced_pod, name, namespace),
            )
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise

    async def get_pods_by_label(self, labels: dict[str, str], namespace: str) -> list[client.V1Pod]:
        """List pods matching all labels; empty namespace lists every namespace."""
        selector = label_selector(labels)
        if namespace:
            result = await self._call_api(
                self.core_api.list_namespaced_pod, namespace, label_selector=selector
            )
        else:
            result = await self._call_api(
                self.core_api.list_pod_for_all_namespaces, label_selector=selector
            )
        return list(cast(client.V1PodList, result).items)

    async def get_deployments_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Deployment]:
        """List deployments matching all labels."""
        selector = label_selector(labels)
        if namespace:
            result = await self._call_api(
                self.apps_api.list_namespaced_deployment, namespace, label_selector=selector
            )
        else:
            result = await self._call_api(
                self.apps_api.list_deployment_for_all_namespaces, label_selector=selector
            )
        return list(cast(client.V1DeploymentList, result).items)

    async def get_services_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Service]:
        """List services matching all labels."""
        selector = label_selector(labels)
        if namespace:
            result = await self._call_api(
                self.core_api.list_namespaced_service, namespace, label_selector=selector
            )
        else:
            result = await self._call_api(
                self.core_api.list_service_for_all_namespaces, label_selector=selector
            )
        return list(cast(client.V1ServiceList, result).items)

    async def get_config_map(self, name: str, namespace: str) -> client.V1ConfigMap | None:
        """Read a config map, ``None`` if it does not exist."""
        try:
            return cast(
                client.V1ConfigMap,
                await self._call_api(self.core_api.read_namespaced_config_map, name, namespace),
            )
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise

    async def create_config_map_with_ssh_key(
        self,
        labels: dict[str, str],
        name: str,
        namespace: str,
        key_pair: SSHKeyPair,
    ) -> client.V1ConfigMap:
        """Create the config map carrying a shadow's key pair."""
        body = client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=dict(labels)),
            data={
                SSH_AUTH_KEY: key_pair.public_key.decode(),
                SSH_AUTH_PRIVATE_KEY: key_pair.private_key.decode(),
            },
        )
        return cast(
            client.V1ConfigMap,
            await self._call_api(self.core_api.create_namespaced_config_map, namespace, body),
        )

    async def create_shadow_pod(
        self, meta_and_spec: PodMetaAndSpec, config_map_name: str
    ) -> client.V1Pod:
        """Create the shadow pod."""
        body = build_shadow_pod(meta_and_spec, config_map_name)
        return cast(
            client.V1Pod,
            await self._call_api(
                self.core_api.create_namespaced_pod, meta_and_spec.meta.namespace, body
            ),
        )

    async def wait_pod_ready(
        self, name: str, namespace: str, timeout: float, interval: float
    ) -> client.V1Pod:
        """Poll a pod until it is ready.

        Raises:
            ShadowReadyTimeoutError: Pod failed, or not ready within ``timeout``
        """
        deadline = time.monotonic() + timeout
        phase: str | None = None
        while True:
            pod = await self.get_pod(name, namespace)
            if pod is not None:
                phase = pod.status.phase if pod.status else None
                if is_pod_ready(pod):
                    log.info("shadow_pod_ready", pod=name, namespace=namespace)
                    return pod
                if phase in POD_TERMINAL_PHASES:
                    raise ShadowReadyTimeoutError(name, namespace, timeout, phase)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ShadowReadyTimeoutError(name, namespace, timeout, phase)
            log.debug("shadow_pod_waiting", pod=name, namespace=namespace, phase=phase)
            await asyncio.sleep(min(interval, remaining))

    async def increase_ref(self, name: str, namespace: str) -> None:
        """Add one to the pod's reference count.

        The update carries the resourceVersion that was read, so a concurrent
        writer makes it fail with 409 and the read-modify-write is retried.
        """
        for attempt in range(1, self.ref_update_retries + 1):
            pod = cast(
                client.V1Pod,
                await self._call_api(self.core_api.read_namespaced_pod, name, namespace),
            )
            annotations = dict(pod.metadata.annotations or {})
            count = _parse_ref_count(annotations.get(REF_COUNT_ANNOTATION))
            annotations[REF_COUNT_ANNOTATION] = str(count + 1)
            pod.metadata.annotations = annotations
            try:
                await self._call_api(self.core_api.replace_namespaced_pod, name, namespace, pod)
            except ApiException as e:
                if e.status != HTTP_CONFLICT:
                    raise
                log.debug("shadow_ref_conflict", pod=name, namespace=namespace, attempt=attempt)
                continue
            log.info("shadow_ref_increased", pod=name, namespace=namespace, ref_count=count + 1)
            return
        raise ShadowRefConflictError(name, namespace, self.ref_update_retries)


def _parse_ref_count(value: str | None) -> int:
    try:
        return max(int(value or "0"), 0)
    except ValueError:
        return 0


__all__ = [
    "KubernetesClient",
    "KubernetesInterface",
    "build_shadow_pod",
    "is_pod_ready",
    "label_selector",
]
