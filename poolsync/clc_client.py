"""HTTP client for the CenturyLink Cloud v2 control plane.

Only the handful of resources the reconciler needs: datacenters, groups and
servers (read-only, for address resolution) and shared load balancers, their
pools and pool nodes.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from .api_models import DataCenter, Group, LoadBalancer, Node, Pool, Server
from .errors import AuthenticationError, RemoteError
from .settings import Settings

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_BODY = object()


class ClcClient:
    """Thin synchronous wrapper around an httpx.Client.

    Logs in lazily with the configured credentials and keeps the bearer token.
    Every transport failure or non-2xx response is raised as RemoteError; nothing
    is retried, apart from a single re-login when an established token expires.
    """

    def __init__(self, cfg: Settings, http: httpx.Client | None = None):
        self._cfg = cfg
        self._base = cfg.base_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=cfg.request_timeout_s, follow_redirects=False)
        self._token: str | None = None
        self._alias: str | None = cfg.account_alias

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> ClcClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # --- session -----------------------------------------------------------

    def login(self) -> None:
        if not self._cfg.username or not self._cfg.password:
            raise AuthenticationError("CLC_USERNAME and CLC_PASSWORD must be set to reach the control plane.")
        resp = self._send(
            "POST",
            "/v2/authentication/login",
            json={"username": self._cfg.username, "password": self._cfg.password},
            authenticated=False,
        )
        if resp.status_code in (400, 401, 403):
            raise AuthenticationError(
                f"Login refused (HTTP {resp.status_code})",
                method="POST",
                url=str(resp.request.url),
                status_code=resp.status_code,
                body=resp.text,
            )
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise self._malformed(resp, "login response is not an object")
        token = data.get("bearerToken")
        if not token:
            raise AuthenticationError("Login response carried no bearer token", method="POST", url=str(resp.request.url))
        self._token = token
        if not self._alias:
            self._alias = data.get("accountAlias")
        log.debug("Logged in to %s as %s (alias %s)", self._base, self._cfg.username, self._alias)

    @property
    def alias(self) -> str:
        if not self._alias:
            self.login()
        if not self._alias:
            raise AuthenticationError("Account alias unknown: set CLC_ALIAS.")
        return self._alias

    # --- datacenters / directory -------------------------------------------

    def get_datacenter(self, dc: str) -> DataCenter:
        resp = self._request("GET", f"/v2/datacenters/{self.alias}/{dc}", params={"groupLinks": "true"})
        return self._decode(resp, DataCenter)

    def get_group(self, group_id: str) -> Group:
        resp = self._request("GET", f"/v2/groups/{self.alias}/{group_id}")
        return self._decode(resp, Group)

    def get_server(self, name: str) -> Server:
        resp = self._request("GET", f"/v2/servers/{self.alias}/{name}")
        return self._decode(resp, Server)

    # --- shared load balancers ---------------------------------------------

    def _lb_path(self, dc: str, *parts: str) -> str:
        tail = "".join(f"/{p}" for p in parts)
        return f"/v2/sharedLoadBalancers/{self.alias}/{dc}{tail}"

    def list_load_balancers(self, dc: str) -> list[LoadBalancer]:
        resp = self._request("GET", self._lb_path(dc))
        return [self._decode(resp, LoadBalancer, item) for item in self._json(resp) or []]

    def get_load_balancer(self, dc: str, lb_id: str) -> LoadBalancer:
        resp = self._request("GET", self._lb_path(dc, lb_id))
        return self._decode(resp, LoadBalancer)

    def create_load_balancer(self, dc: str, name: str, description: str) -> LoadBalancer:
        payload = {"name": name, "description": description, "status": "enabled"}
        resp = self._request("POST", self._lb_path(dc), json=payload)
        return self._decode(resp, LoadBalancer)

    def delete_load_balancer(self, dc: str, lb_id: str) -> None:
        self._request("DELETE", self._lb_path(dc, lb_id))

    def create_pool(self, dc: str, lb_id: str, port: int) -> Pool:
        payload = {"port": int(port), "method": "roundRobin", "persistence": "standard"}
        resp = self._request("POST", self._lb_path(dc, lb_id, "pools"), json=payload)
        return self._decode(resp, Pool)

    def delete_pool(self, dc: str, lb_id: str, pool_id: str) -> None:
        self._request("DELETE", self._lb_path(dc, lb_id, "pools", pool_id))

    def update_nodes(self, dc: str, lb_id: str, pool_id: str, nodes: Iterable[Node]) -> None:
        """Replace the pool's whole node list."""
        payload = [n.to_wire() for n in nodes]
        self._request("PUT", self._lb_path(dc, lb_id, "pools", pool_id, "nodes"), json=payload)

    # --- plumbing ----------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self._token is None:
            self.login()
        resp = self._send(method, path, **kwargs)
        if resp.status_code == 401:
            log.debug("Token rejected on %s %s; logging in again", method, path)
            self._token = None
            self.login()
            resp = self._send(method, path, **kwargs)
        self._raise_for_status(resp)
        return resp

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        url = f"{self._base}{path}"
        headers = {"User-Agent": self._cfg.user_agent, "Accept": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        log.debug("-> %s %s", method, url)
        try:
            resp = self._http.request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {url} failed: {type(e).__name__}: {e}", method=method, url=url) from e
        log.debug("<- %s %s HTTP %s", method, url, resp.status_code)
        return resp

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        req = resp.request
        raise RemoteError(
            f"{req.method} {req.url} returned HTTP {resp.status_code}: {resp.text[:200]}",
            method=req.method,
            url=str(req.url),
            status_code=resp.status_code,
            body=resp.text,
        )

    @staticmethod
    def _malformed(resp: httpx.Response, detail: str) -> RemoteError:
        req = resp.request
        return RemoteError(
            f"{req.method} {req.url} returned an unreadable body: {detail}",
            method=req.method,
            url=str(req.url),
            status_code=resp.status_code,
            body=resp.text,
        )

    def _json(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise self._malformed(resp, str(e)) from e

    def _decode(self, resp: httpx.Response, model: type[M], data: Any = _BODY) -> M:
        """Validate `data` (default: the response body) as `model`."""
        if data is _BODY:
            data = self._json(resp)
        try:
            return model.model_validate(data)
        except SchemaError as e:
            raise self._malformed(resp, f"{model.__name__}: {e.error_count()} validation error(s)") from e
