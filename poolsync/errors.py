from __future__ import annotations


class PoolSyncError(Exception):
    pass


class RemoteError(PoolSyncError):
    """The control plane failed: transport error or a non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body


class AuthenticationError(RemoteError):
    pass


class ValidationError(PoolSyncError, ValueError):
    pass


class UnresolvableAddressError(PoolSyncError):
    pass


class ConvergenceTimeout(PoolSyncError):
    pass


class DirectoryLimitExceeded(PoolSyncError):
    pass
