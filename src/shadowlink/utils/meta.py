"""Helpers for label/annotation maps and the local client identity."""

from __future__ import annotations

import getpass
import socket
from collections.abc import Mapping


# Any routable address works, nothing is sent on a UDP connect
_PROBE_ADDRESS = ("8.8.8.8", 80)


def string_to_map(value: str | None) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` into a dict.

    Blank entries are skipped; an entry without ``=`` maps to an empty value.
    """
    result: dict[str, str] = {}
    if not value:
        return result
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, _, val = item.partition("=")
        result[key.strip()] = val.strip()
    return result


def merge_maps(*maps: Mapping[str, str] | None) -> dict[str, str]:
    """Merge maps left to right, later maps win on key collision."""
    merged: dict[str, str] = {}
    for item in maps:
        if item:
            merged.update(item)
    return merged


def get_local_user_name() -> str:
    """Name of the user running this process."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def get_outbound_ip() -> str:
    """Local address used for outbound traffic, ``127.0.0.1`` if unknown."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(_PROBE_ADDRESS)
        return str(sock.getsockname()[0])
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


__all__ = ["get_local_user_name", "get_outbound_ip", "merge_maps", "string_to_map"]
