"""Unit tests for the shadow orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeKubernetes, shadow_labels
from shadowlink.config.settings import Settings, ShadowSettings
from shadowlink.observability._metrics import registry
from shadowlink.shadow.errors import ShadowInconsistentError
from shadowlink.shadow.keys import private_key_path
from shadowlink.shadow.models import CONTROL_BY_LABEL, USER_ANNOTATION
from shadowlink.shadow.orchestrator import (
    ShadowOrchestrator,
    build_resource_meta,
    get_or_create_shadow,
)


def _metric(name: str, labels: dict[str, str]) -> float:
    return registry.get_sample_value(name, labels) or 0.0


class TestBuildResourceMeta:
    """Tests for label and annotation assembly."""

    def test_configured_extras_override_base(self, key_dir: Path) -> None:
        settings = Settings(
            namespace="dev",
            shadow=ShadowSettings(
                key_dir=key_dir,
                with_labels="team=platform,tier=edge",
                with_annotations="note=configured",
            ),
        )

        meta = build_resource_meta(
            "shadow-m",
            settings,
            {"team": "core", "role": "shadow"},
            {"note": "base", "keep": "yes"},
            "alice",
        )

        assert meta.name == "shadow-m"
        assert meta.namespace == "dev"
        assert meta.labels["team"] == "platform"
        assert meta.labels["tier"] == "edge"
        assert meta.labels["role"] == "shadow"
        assert meta.labels[CONTROL_BY_LABEL] == "shadowlink"
        assert meta.annotations == {"note": "configured", "keep": "yes", USER_ANNOTATION: "alice"}

    def test_inputs_not_mutated(self, settings: Settings) -> None:
        labels = {"role": "shadow"}
        annotations: dict[str, str] = {}
        build_resource_meta("s", settings, labels, annotations, "alice")
        assert labels == {"role": "shadow"}
        assert annotations == {}


@pytest.mark.asyncio
async def test_sharing_disabled_never_discovers(
    fake_k8s: FakeKubernetes, settings: Settings
) -> None:
    await get_or_create_shadow(fake_k8s, "shadow-1", settings, local_user="alice")
    await get_or_create_shadow(fake_k8s, "shadow-2", settings, local_user="alice")

    assert "get_pods_by_label" not in fake_k8s.calls
    assert "get_pod" not in fake_k8s.calls
    first = Path(private_key_path("shadow-1", settings.shadow.key_dir)).read_bytes()
    second = Path(private_key_path("shadow-2", settings.shadow.key_dir)).read_bytes()
    assert first != second


@pytest.mark.asyncio
async def test_sharing_without_existing_provisions(
    fake_k8s: FakeKubernetes, shared_settings: Settings
) -> None:
    result = await get_or_create_shadow(fake_k8s, "shadow-new", shared_settings, local_user="bob")

    assert result.pod_name == "shadow-new"
    assert ("create_pod", "shadow-new") in fake_k8s.mutations
    pod = fake_k8s.find_pod("shadow-new", "dev")
    assert pod is not None
    assert pod.metadata.annotations[USER_ANNOTATION] == "bob"


@pytest.mark.asyncio
async def test_reuse_counts_metric(fake_k8s: FakeKubernetes, shared_settings: Settings) -> None:
    fake_k8s.add_pod("shadow-m", "dev", shadow_labels("shadow-m"))
    fake_k8s.add_config_map("shadow-m", "dev", "PRIVATE", "PUBLIC")
    before = _metric("shadowlink_shadow_pods_reused_total", {"namespace": "dev"})

    await get_or_create_shadow(fake_k8s, "shadow-m", shared_settings, local_user="bob")

    after = _metric("shadowlink_shadow_pods_reused_total", {"namespace": "dev"})
    assert after == before + 1


@pytest.mark.asyncio
async def test_errors_are_counted_and_raised(
    fake_k8s: FakeKubernetes, shared_settings: Settings
) -> None:
    fake_k8s.add_pod("shadow-o", "dev", shadow_labels("shadow-o"))
    before = _metric("shadowlink_shadow_errors_total", {"reason": "shadow_inconsistent"})

    with pytest.raises(ShadowInconsistentError):
        await get_or_create_shadow(fake_k8s, "shadow-o", shared_settings, local_user="bob")

    after = _metric("shadowlink_shadow_errors_total", {"reason": "shadow_inconsistent"})
    assert after == before + 1
    assert fake_k8s.mutations == []


@pytest.mark.asyncio
async def test_orchestrator_uses_settings_namespace(
    fake_k8s: FakeKubernetes, settings: Settings
) -> None:
    orchestrator = ShadowOrchestrator(fake_k8s, settings)

    result = await orchestrator.get_or_create_shadow("shadow-o", local_user="carol")
    resources = await orchestrator.list_controlled_resources()

    assert [p.metadata.name for p in resources.pods] == [result.pod_name]
    assert result.credential.port == settings.shadow.ssh_port


@pytest.mark.asyncio
async def test_orchestrator_lists_all_namespaces(
    fake_k8s: FakeKubernetes, settings: Settings
) -> None:
    fake_k8s.add_pod("elsewhere", "prod", shadow_labels("elsewhere"))
    orchestrator = ShadowOrchestrator(fake_k8s, settings)

    resources = await orchestrator.list_controlled_resources("")

    assert [p.metadata.name for p in resources.pods] == ["elsewhere"]
