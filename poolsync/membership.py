from __future__ import annotations

import logging
from typing import Iterable

from .api_models import LoadBalancer, Node, Pool
from .clc_client import ClcClient

log = logging.getLogger(__name__)


def unique_nodes(nodes: Iterable[Node]) -> list[Node]:
    """Drop repeated (address, port) entries, keeping the first of each."""
    seen: set[tuple[str, int]] = set()
    out: list[Node] = []
    for n in nodes:
        if n.key in seen:
            continue
        seen.add(n.key)
        out.append(n)
    return out


def with_node(nodes: list[Node], node: Node) -> list[Node] | None:
    """Desired list after adding `node`, or None when it is already a member."""
    if node in nodes:
        return None
    return unique_nodes([*nodes, node])


def without_node(nodes: list[Node], node: Node) -> list[Node] | None:
    """Desired list with the first entry equal to `node` removed, or None if absent."""
    for i, existing in enumerate(nodes):
        if existing == node:
            return unique_nodes(nodes[:i] + nodes[i + 1 :])
    return None


class MembershipReconciler:
    """Applies node additions/removals by replacing a pool's full node list.

    There is no compare-and-swap on the remote side: two writers working from
    the same snapshot will overwrite each other. Callers serialize per key.
    """

    def __init__(self, client: ClcClient):
        self.client = client

    def add(self, region: str, load_balancer: LoadBalancer, pool: Pool, node: Node) -> bool:
        desired = with_node(pool.nodes, node)
        if desired is None:
            log.info(
                "Node %s:%d already in pool %s of load balancer %s",
                node.ip_address, node.private_port, pool.id, load_balancer.name,
            )
            return False
        self.client.update_nodes(region, load_balancer.id, pool.id, desired)
        log.info("Added node %s:%d to pool %s", node.ip_address, node.private_port, pool.id)
        return True

    def remove(self, region: str, load_balancer: LoadBalancer, pool: Pool, node: Node) -> bool:
        desired = without_node(pool.nodes, node)
        if desired is None:
            log.debug("Node %s:%d not in pool %s; nothing to remove", node.ip_address, node.private_port, pool.id)
            return False
        self.client.update_nodes(region, load_balancer.id, pool.id, desired)
        log.info("Removed node %s:%d from pool %s", node.ip_address, node.private_port, pool.id)
        return True
