from __future__ import annotations


class AppError(Exception):
    pass


class BusinessError(AppError):
    pass


class ValidationError(BusinessError):
    pass


class ImmutableRemoteIdError(BusinessError):
    """An acknowledged record cannot change its remote id."""


class UnacknowledgedRecordError(BusinessError):
    """The action targets a local record the remote has not confirmed yet."""


class InfraError(AppError):
    pass


class PersistenceError(InfraError):
    pass


class StorageError(PersistenceError):
    pass


class ExternalServiceError(InfraError):
    pass


class RemoteError(ExternalServiceError):
    pass


class AuthError(RemoteError):
    pass


class ServerError(RemoteError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientExternalError(RemoteError):
    pass


class TransportError(TransientExternalError):
    pass
