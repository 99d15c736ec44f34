from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .clc_client import ClcClient
from .errors import RemoteError

log = logging.getLogger(__name__)


@dataclass
class CollectionReport:
    load_balancer_id: str
    deleted_pools: list[str] = field(default_factory=list)
    deleted_load_balancer: bool = False

    @property
    def changed(self) -> bool:
        return self.deleted_load_balancer or bool(self.deleted_pools)


class GarbageCollector:
    """Reclaims empty pools, and the balancer itself once every pool is empty."""

    def __init__(self, client: ClcClient):
        self.client = client

    def collect(self, region: str, lb_id: str) -> CollectionReport:
        report = CollectionReport(load_balancer_id=lb_id)
        try:
            lb = self.client.get_load_balancer(region, lb_id)
        except RemoteError as e:
            if e.status_code == 404:
                log.info("Load balancer %s already gone; nothing to collect", lb_id)
                return report
            raise

        # A balancer with no pools counts as empty. Deleting it takes its pools
        # with it, so pools are never deleted individually in that case.
        if all(p.is_empty for p in lb.pools):
            self.client.delete_load_balancer(region, lb.id)
            report.deleted_load_balancer = True
            log.info("Deleted load balancer %s as all pools are empty", lb.name)
            return report

        for pool in lb.pools:
            if not pool.is_empty:
                continue
            self.client.delete_pool(region, lb.id, pool.id)
            report.deleted_pools.append(pool.id)
            log.info("Deleted pool %s (port %d) of load balancer %s as it has no nodes", pool.id, pool.port, lb.name)
        return report
