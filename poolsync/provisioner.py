from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

from .api_models import LoadBalancer, Pool
from .clc_client import ClcClient
from .errors import ConvergenceTimeout, RemoteError
from .lookup import Found, Lookup, NotFound

log = logging.getLogger(__name__)


def describe_new_load_balancer(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"Created by poolsync at {now.strftime('%Y-%m-%d %H:%M:%S')}"


class LoadBalancerProvisioner:
    """Finds load balancers by name and creates them on demand."""

    def __init__(
        self,
        client: ClcClient,
        wait_timeout_s: float = 10.0,
        poll_initial_s: float = 0.25,
        poll_max_s: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.wait_timeout_s = max(0.0, float(wait_timeout_s))
        self.poll_initial_s = max(0.01, float(poll_initial_s))
        self.poll_max_s = max(self.poll_initial_s, float(poll_max_s))
        self._sleep = sleep
        self._clock = clock

    def find(self, region: str, name: str) -> Lookup[LoadBalancer]:
        for lb in self.client.list_load_balancers(region):
            if lb.name == name:
                return Found(lb)
        return NotFound(f"no load balancer named {name!r} in {region}")

    def find_or_create(self, region: str, name: str) -> LoadBalancer:
        found = self.find(region, name)
        if found:
            return found.value

        created = self.client.create_load_balancer(region, name, describe_new_load_balancer())
        log.info(
            "Created load balancer %s in %s: id=%s ip=%s", name, region, created.id, created.ip_address
        )
        return self.wait_until_visible(region, created)

    def wait_until_visible(self, region: str, created: LoadBalancer) -> LoadBalancer:
        """Poll with backoff until the new balancer can be read back.

        The control plane applies creations asynchronously; creating a pool
        against an id it cannot yet read tends to fail.
        """
        deadline = self._clock() + self.wait_timeout_s
        delay = self.poll_initial_s
        attempt = 0
        while True:
            attempt += 1
            try:
                lb = self.client.get_load_balancer(region, created.id)
                log.debug("Load balancer %s visible after %d attempt(s)", created.id, attempt)
                return lb
            except RemoteError as e:
                if e.status_code != 404:
                    raise
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ConvergenceTimeout(
                    f"Load balancer {created.name} ({created.id}) not visible after {self.wait_timeout_s:.1f}s."
                )
            self._sleep(min(delay, remaining))
            delay = min(delay * 2, self.poll_max_s)


class PoolProvisioner:
    """Finds the pool bound to a port on a balancer, creating it if absent."""

    def __init__(self, client: ClcClient):
        self.client = client

    @staticmethod
    def find(load_balancer: LoadBalancer, port: int) -> Lookup[Pool]:
        # Ports are unique per balancer by construction; first match wins.
        for pool in load_balancer.pools:
            if pool.port == port:
                return Found(pool)
        return NotFound(f"load balancer {load_balancer.name} has no pool for port {port}")

    def find_or_create(self, region: str, load_balancer: LoadBalancer, port: int) -> Pool:
        found = self.find(load_balancer, port)
        if found:
            return found.value

        pool = self.client.create_pool(region, load_balancer.id, port)
        log.info("Created pool %s for port %d on load balancer %s", pool.id, port, load_balancer.name)
        return pool
