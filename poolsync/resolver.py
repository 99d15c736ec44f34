from __future__ import annotations

import logging

from .clc_client import ClcClient
from .errors import DirectoryLimitExceeded
from .lookup import Found, Lookup, NotFound

log = logging.getLogger(__name__)


class AddressResolver:
    """Maps a host's public address to the internal one the balancer must dial.

    Walks the datacenter's group tree. Within a group every server is checked
    before any child group is entered; child groups are visited depth-first in
    the order the API lists them. The first match in that order wins.
    """

    def __init__(self, client: ClcClient, max_depth: int = 32, max_groups: int = 1000):
        self.client = client
        self.max_depth = max(1, int(max_depth))
        self.max_groups = max(1, int(max_groups))

    def resolve(self, region: str, public_ip: str) -> Lookup[str]:
        dc = self.client.get_datacenter(region)
        # Stack of (group_id, depth); reversed so the first root is visited first.
        stack: list[tuple[str, int]] = [(gid, 0) for gid in reversed(dc.group_ids())]
        visited = 0

        while stack:
            group_id, depth = stack.pop()
            if depth >= self.max_depth:
                raise DirectoryLimitExceeded(
                    f"Group {group_id} is nested deeper than {self.max_depth} levels in datacenter {region}."
                )
            visited += 1
            if visited > self.max_groups:
                raise DirectoryLimitExceeded(
                    f"Searched {self.max_groups} groups in datacenter {region} without finding {public_ip}."
                )

            group = self.client.get_group(group_id)
            log.debug("Searching group %s (%s) at depth %d", group.id, group.name, depth)

            for server_name in group.server_names():
                internal = self.client.get_server(server_name).internal_for(public_ip)
                if internal:
                    log.debug("Server %s maps %s -> %s", server_name, public_ip, internal)
                    return Found(internal)

            for child in reversed(group.groups):
                stack.append((child.id, depth + 1))

        return NotFound(f"no server in datacenter {region} exposes public address {public_ip}")
