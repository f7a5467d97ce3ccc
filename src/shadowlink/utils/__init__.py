"""shadowlink utilities package."""

from shadowlink.utils.meta import (
    get_local_user_name,
    get_outbound_ip,
    merge_maps,
    string_to_map,
)

__all__ = ["get_local_user_name", "get_outbound_ip", "merge_maps", "string_to_map"]
