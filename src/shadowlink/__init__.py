"""shadowlink - shadow pod provisioning for cluster tunnels.

Creates or reuses an SSH-reachable "shadow" pod inside a Kubernetes
cluster so a local client can bridge traffic into it.
"""

from shadowlink.version import __version__


__all__ = ["__version__"]
