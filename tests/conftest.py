"""Pytest configuration and fixtures for shadowlink tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest
from kubernetes import client

from shadowlink.config.settings import Settings, ShadowSettings
from shadowlink.kubernetes.client import build_shadow_pod
from shadowlink.shadow.keys import SSHKeyPair
from shadowlink.shadow.models import (
    CONTROL_LABELS,
    NAME_LABEL,
    REF_COUNT_ANNOTATION,
    SSH_AUTH_KEY,
    SSH_AUTH_PRIVATE_KEY,
    PodMetaAndSpec,
)

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


# Ensure we're using test configuration
os.environ.setdefault("SHADOWLINK_ENVIRONMENT", "development")
os.environ.setdefault("SHADOWLINK_OBSERVABILITY_LOG_FORMAT", "console")


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings cache before each test."""
    from shadowlink.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _matches(obj: Any, labels: dict[str, str], namespace: str) -> bool:
    meta = obj.metadata
    if namespace and meta.namespace != namespace:
        return False
    own = meta.labels or {}
    return all(own.get(k) == v for k, v in labels.items())


class FakeKubernetes:
    """In-memory ``KubernetesInterface`` recording every mutation."""

    def __init__(self, pod_ip: str = "10.0.0.7") -> None:
        self.pod_ip = pod_ip
        self.pods: list[client.V1Pod] = []
        self.config_maps: dict[tuple[str, str], client.V1ConfigMap] = {}
        self.deployments: list[client.V1Deployment] = []
        self.services: list[client.V1Service] = []
        self.mutations: list[tuple[str, str]] = []
        self.calls: list[str] = []
        self.errors: dict[str, Exception] = {}

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.errors:
            raise self.errors[operation]

    # Seeding helpers

    def add_pod(
        self,
        name: str,
        namespace: str,
        labels: dict[str, str],
        *,
        pod_ip: str = "10.0.0.99",
        ref_count: int = 1,
    ) -> client.V1Pod:
        pod = client.V1Pod(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels=dict(labels),
                annotations={REF_COUNT_ANNOTATION: str(ref_count)},
            ),
            status=client.V1PodStatus(phase="Running", pod_ip=pod_ip),
        )
        self.pods.append(pod)
        return pod

    def add_config_map(
        self, name: str, namespace: str, private_key: str, public_key: str
    ) -> client.V1ConfigMap:
        config_map = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            data={SSH_AUTH_PRIVATE_KEY: private_key, SSH_AUTH_KEY: public_key},
        )
        self.config_maps[(namespace, name)] = config_map
        return config_map

    def find_pod(self, name: str, namespace: str) -> client.V1Pod | None:
        for pod in self.pods:
            if pod.metadata.name == name and pod.metadata.namespace == namespace:
                return pod
        return None

    def ref_count(self, name: str, namespace: str) -> int:
        pod = self.find_pod(name, namespace)
        assert pod is not None
        return int(pod.metadata.annotations[REF_COUNT_ANNOTATION])

    # KubernetesInterface

    async def get_pod(self, name: str, namespace: str) -> client.V1Pod | None:
        self._enter("get_pod")
        return self.find_pod(name, namespace)

    async def get_pods_by_label(self, labels: dict[str, str], namespace: str) -> list[client.V1Pod]:
        self._enter("get_pods_by_label")
        return [p for p in self.pods if _matches(p, labels, namespace)]

    async def get_deployments_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Deployment]:
        self._enter("get_deployments_by_label")
        return [d for d in self.deployments if _matches(d, labels, namespace)]

    async def get_services_by_label(
        self, labels: dict[str, str], namespace: str
    ) -> list[client.V1Service]:
        self._enter("get_services_by_label")
        return [s for s in self.services if _matches(s, labels, namespace)]

    async def get_config_map(self, name: str, namespace: str) -> client.V1ConfigMap | None:
        self._enter("get_config_map")
        return self.config_maps.get((namespace, name))

    async def create_config_map_with_ssh_key(
        self,
        labels: dict[str, str],
        name: str,
        namespace: str,
        key_pair: SSHKeyPair,
    ) -> client.V1ConfigMap:
        self._enter("create_config_map_with_ssh_key")
        config_map = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=dict(labels)),
            data={
                SSH_AUTH_KEY: key_pair.public_key.decode(),
                SSH_AUTH_PRIVATE_KEY: key_pair.private_key.decode(),
            },
        )
        self.config_maps[(namespace, name)] = config_map
        self.mutations.append(("create_config_map", name))
        return config_map

    async def create_shadow_pod(
        self, meta_and_spec: PodMetaAndSpec, config_map_name: str
    ) -> client.V1Pod:
        self._enter("create_shadow_pod")
        pod = build_shadow_pod(meta_and_spec, config_map_name)
        pod.status = client.V1PodStatus(phase="Pending")
        self.pods.append(pod)
        self.mutations.append(("create_pod", meta_and_spec.meta.name))
        return pod

    async def wait_pod_ready(
        self, name: str, namespace: str, timeout: float, interval: float
    ) -> client.V1Pod:
        self._enter("wait_pod_ready")
        pod = self.find_pod(name, namespace)
        assert pod is not None
        pod.status = client.V1PodStatus(phase="Running", pod_ip=self.pod_ip)
        return pod

    async def increase_ref(self, name: str, namespace: str) -> None:
        self._enter("increase_ref")
        pod = self.find_pod(name, namespace)
        assert pod is not None
        annotations = pod.metadata.annotations
        annotations[REF_COUNT_ANNOTATION] = str(int(annotations[REF_COUNT_ANNOTATION]) + 1)
        self.mutations.append(("increase_ref", name))


@pytest.fixture
def fake_k8s() -> FakeKubernetes:
    """Empty in-memory cluster."""
    return FakeKubernetes()


@pytest.fixture
def key_dir(tmp_path: Path) -> Path:
    """Private key directory isolated per test."""
    return tmp_path / "pk"


@pytest.fixture
def settings(key_dir: Path) -> Settings:
    """Settings targeting namespace ``dev`` with sharing disabled."""
    return Settings(
        namespace="dev",
        shadow=ShadowSettings(key_dir=key_dir, share=False, image="shadow:test"),
    )


@pytest.fixture
def shared_settings(key_dir: Path) -> Settings:
    """Settings targeting namespace ``dev`` with sharing enabled."""
    return Settings(
        namespace="dev",
        shadow=ShadowSettings(key_dir=key_dir, share=True, image="shadow:test"),
    )


def shadow_labels(name: str, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Label set a shadow called ``name`` is created with."""
    return {**CONTROL_LABELS, **(extra or {}), NAME_LABEL: name}
