"""HTTP surface through which an event source drives the reconciler."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request

from .api_models import ProbeResponse, ReconcileResponse, ServiceInstance
from .errors import (
    ConvergenceTimeout,
    PoolSyncError,
    RemoteError,
    UnresolvableAddressError,
    ValidationError,
)
from .reconciler import Reconciler, ReconcileResult


def _status_for(err: PoolSyncError) -> int:
    if isinstance(err, (ValidationError, UnresolvableAddressError)):
        return 422
    if isinstance(err, RemoteError):
        return 502
    if isinstance(err, ConvergenceTimeout):
        return 504
    return 500


def _response(result: ReconcileResult) -> ReconcileResponse:
    return ReconcileResponse(**asdict(result))


def create_app(reconciler: Reconciler) -> FastAPI:
    app = FastAPI(title="poolsync", version="0.1.0")
    app.state.reconciler = reconciler

    def _rec(request: Request) -> Reconciler:
        return request.app.state.reconciler

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    @app.get("/probe", response_model=ProbeResponse)
    def probe(request: Request):
        rec = _rec(request)
        try:
            rec.probe()
        except PoolSyncError as e:
            raise HTTPException(status_code=_status_for(e), detail=str(e))
        return ProbeResponse(status="ok", region=rec.region)

    @app.post("/instances/up", response_model=ReconcileResponse)
    def instance_up(instance: ServiceInstance, request: Request):
        try:
            return _response(_rec(request).on_instance_up(instance))
        except PoolSyncError as e:
            raise HTTPException(status_code=_status_for(e), detail=str(e))

    @app.post("/instances/down", response_model=ReconcileResponse)
    def instance_down(instance: ServiceInstance, request: Request):
        try:
            return _response(_rec(request).on_instance_down(instance))
        except PoolSyncError as e:
            raise HTTPException(status_code=_status_for(e), detail=str(e))

    @app.get("/instances", response_model=list[ServiceInstance])
    def instances(request: Request):
        return _rec(request).list_managed_instances()

    @app.get("/outcomes")
    def outcomes(request: Request, limit: int = 50):
        return [asdict(o) for o in _rec(request).runtime.recent_outcomes(limit)]

    return app
