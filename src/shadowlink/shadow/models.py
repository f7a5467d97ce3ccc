"""Data model shared by the shadow pod workflow."""

from __future__ import annotations

from dataclasses import dataclass, field


# Labels and annotations stamped on managed objects
CONTROL_BY_LABEL = "shadowlink/control-by"
CONTROL_BY_VALUE = "shadowlink"
NAME_LABEL = "shadowlink/name"
USER_ANNOTATION = "shadowlink/user"
REF_COUNT_ANNOTATION = "shadowlink/ref-count"

# Config map keys carrying key material
SSH_AUTH_KEY = "authorized"
SSH_AUTH_PRIVATE_KEY = "privateKey"

CONTROL_LABELS: dict[str, str] = {CONTROL_BY_LABEL: CONTROL_BY_VALUE}


@dataclass
class ResourceMeta:
    """Identity of a logical cluster object."""

    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SSHKeyMeta:
    """Binds the config map holding key material to a local key file."""

    config_map_name: str
    private_key_path: str


@dataclass
class PodMetaAndSpec:
    """Everything needed to create a new shadow pod."""

    meta: ResourceMeta
    image: str
    envs: dict[str, str] = field(default_factory=dict)


__all__ = [
    "CONTROL_BY_LABEL",
    "CONTROL_BY_VALUE",
    "CONTROL_LABELS",
    "NAME_LABEL",
    "PodMetaAndSpec",
    "REF_COUNT_ANNOTATION",
    "ResourceMeta",
    "SSHKeyMeta",
    "SSH_AUTH_KEY",
    "SSH_AUTH_PRIVATE_KEY",
    "USER_ANNOTATION",
]
