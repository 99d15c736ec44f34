from __future__ import annotations

import logging
import re
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, ContextManager

from .api_models import DataCenter, LoadBalancer, Node, ServiceInstance
from .clc_client import ClcClient
from .collector import GarbageCollector
from .errors import PoolSyncError, UnresolvableAddressError, ValidationError
from .membership import MembershipReconciler
from .provisioner import LoadBalancerProvisioner, PoolProvisioner
from .resolver import AddressResolver
from .runtime import ReconcileOutcome, RuntimeState
from .settings import Settings

log = logging.getLogger(__name__)

# ASCII digits, no sign, separator or leading zero.
_DIGITS = re.compile(r"[1-9][0-9]*")


def parse_port(raw: object, what: str) -> int:
    text = str(raw).strip()
    if not _DIGITS.fullmatch(text):
        raise ValidationError(f"{what} {raw!r} is not a port number.")
    port = int(text)
    if not 1 <= port <= 65535:
        raise ValidationError(f"{what} {port} is outside 1-65535.")
    return port


def validate_exposed_port(raw: object, allowed: tuple[int, ...]) -> int:
    port = parse_port(raw, "Exposed port")
    if port not in allowed:
        ports = " or ".join(str(p) for p in allowed)
        raise ValidationError(f"A load balancer can only be created for port {ports} (got {port}).")
    return port


@dataclass(frozen=True)
class ReconcileResult:
    action: str
    service: str
    changed: bool
    load_balancer_id: str | None = None
    pool_id: str | None = None
    message: str = ""


class Reconciler:
    """Drives load balancer membership from instance up/down events.

    Each call reads fresh state from the control plane, mutates it, and returns.
    """

    def __init__(
        self,
        cfg: Settings,
        client: ClcClient | None = None,
        runtime: RuntimeState | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = cfg
        self.client = client or ClcClient(cfg)
        self.runtime = runtime or RuntimeState()
        self.resolver = AddressResolver(self.client, cfg.directory_max_depth, cfg.directory_max_groups)
        self.load_balancers = LoadBalancerProvisioner(
            self.client,
            wait_timeout_s=cfg.create_wait_timeout_s,
            poll_initial_s=cfg.create_poll_initial_s,
            poll_max_s=cfg.create_poll_max_s,
            sleep=sleep,
        )
        self.pools = PoolProvisioner(self.client)
        self.members = MembershipReconciler(self.client)
        self.collector = GarbageCollector(self.client)

    @property
    def region(self) -> str:
        return self.settings.region

    def probe(self) -> DataCenter:
        """Check the control plane is reachable by reading the configured datacenter."""
        dc = self.client.get_datacenter(self.region)
        log.info("Ping successful. Data center details retrieved for %s", self.region)
        return dc

    def is_opted_in(self, instance: ServiceInstance) -> bool:
        value = instance.attrs.get(self.settings.opt_in_attribute)
        if value is None:
            return False
        return str(value).strip().lower() == "true"

    # --- entry points ------------------------------------------------------

    def on_instance_up(self, instance: ServiceInstance) -> ReconcileResult:
        self._dump(instance)
        if not self.is_opted_in(instance):
            log.info("Service %s not marked for load balancing", instance.name)
            result = ReconcileResult("up", instance.name, False, message="not opted in")
            self._record(result, skipped=True)
            return result

        try:
            exposed_port = validate_exposed_port(instance.exposed_port, self.settings.allowed_ports)
            host_port = parse_port(instance.host_port, "Host port")
            with self._serialized(instance.name):
                result = self._register(instance, exposed_port, host_port)
        except PoolSyncError as e:
            self._record_failure("up", instance.name, e)
            raise
        self._record(result)
        return result

    def on_instance_down(self, instance: ServiceInstance) -> ReconcileResult:
        self._dump(instance)
        try:
            host_port = parse_port(instance.host_port, "Host port")
            with self._serialized(instance.name):
                result = self._deregister(instance, host_port)
        except PoolSyncError as e:
            self._record_failure("down", instance.name, e)
            raise
        self._record(result)
        return result

    def refresh(self, instance: ServiceInstance) -> ReconcileResult:
        # Pool membership has no TTL to refresh.
        result = ReconcileResult("refresh", instance.name, False, message="nothing to refresh")
        self._record(result)
        return result

    def list_managed_instances(self) -> list[ServiceInstance]:
        # Reverse enumeration from pool nodes back to instances is not supported.
        return []

    # --- paths -------------------------------------------------------------

    def _register(self, instance: ServiceInstance, exposed_port: int, host_port: int) -> ReconcileResult:
        resolved = self.resolver.resolve(self.region, instance.host_ip)
        if not resolved:
            raise UnresolvableAddressError(
                f"The internal IP address for host {instance.host_ip} couldn't be found in {self.region}."
            )
        internal_ip = resolved.value
        log.info("Found internal IP %s for host with public IP %s", internal_ip, instance.host_ip)

        lb = self.load_balancers.find_or_create(self.region, instance.name)
        pool = self.pools.find_or_create(self.region, lb, exposed_port)
        node = Node(ip_address=internal_ip, private_port=host_port)
        changed = self.members.add(self.region, lb, pool, node)
        return ReconcileResult(
            "up",
            instance.name,
            changed,
            load_balancer_id=lb.id,
            pool_id=pool.id,
            message=f"{internal_ip}:{host_port} {'added to' if changed else 'already in'} pool {pool.id}",
        )

    def _deregister(self, instance: ServiceInstance, host_port: int) -> ReconcileResult:
        found = self.load_balancers.find(self.region, instance.name)
        if not found:
            log.info("No load balancer named %s in %s; nothing to deregister", instance.name, self.region)
            return ReconcileResult("down", instance.name, False, message="no load balancer")
        lb = found.value

        removed = self._remove_everywhere(instance, lb, host_port)
        report = self.collector.collect(self.region, lb.id)
        parts = [f"removed from {len(removed)} pool(s)"]
        if report.deleted_load_balancer:
            parts.append("load balancer deleted")
        elif report.deleted_pools:
            parts.append(f"deleted pools {', '.join(report.deleted_pools)}")
        return ReconcileResult(
            "down",
            instance.name,
            bool(removed) or report.changed,
            load_balancer_id=lb.id,
            pool_id=removed[0] if len(removed) == 1 else None,
            message="; ".join(parts),
        )

    def _remove_everywhere(self, instance: ServiceInstance, lb: LoadBalancer, host_port: int) -> list[str]:
        """Remove the instance's node from each pool of the balancer; returns touched pool ids."""
        resolved = self.resolver.resolve(self.region, instance.host_ip)
        if not resolved:
            log.warning(
                "Internal IP for host %s not found; no nodes removed from %s", instance.host_ip, lb.name
            )
            return []
        node = Node(ip_address=resolved.value, private_port=host_port)
        return [pool.id for pool in lb.pools if self.members.remove(self.region, lb, pool, node)]

    # --- helpers -----------------------------------------------------------

    def _serialized(self, service: str) -> ContextManager[None]:
        if not self.settings.serialize_per_key:
            return nullcontext()
        return self.runtime.serialized((self.region, service))

    def _record(self, result: ReconcileResult, skipped: bool = False) -> None:
        if skipped:
            state = "skipped"
        else:
            state = "changed" if result.changed else "unchanged"
        self.runtime.record(ReconcileOutcome(result.service, result.action, state, result.message))

    def _record_failure(self, action: str, service: str, err: Exception) -> None:
        log.error("%s for %s failed: %s: %s", action, service, type(err).__name__, err)
        self.runtime.record(ReconcileOutcome(service, action, "failed", f"{type(err).__name__}: {err}"))

    def _dump(self, instance: ServiceInstance) -> None:
        if not log.isEnabledFor(logging.DEBUG):
            return
        log.debug(
            "Instance %s (id=%s container=%s): host %s:%s exposed %s tags=%s attrs=%s",
            instance.name, instance.id, instance.container_name, instance.host_ip,
            instance.host_port, instance.exposed_port, instance.tags, instance.attrs,
        )
        log.debug("Region %s, credentials set: %s", self.region, self.settings.credentials_summary())
