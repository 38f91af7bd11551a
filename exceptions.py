class PortalError(Exception):
    """Base error; carries the HTTP status the API layer answers with."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(PortalError):
    status_code = 400


class InvalidCredentials(PortalError):
    status_code = 401


class NotAuthenticated(PortalError):
    status_code = 401


class PermissionDenied(PortalError):
    status_code = 403


class RecordNotFound(PortalError):
    status_code = 404


class ConfirmationRequired(PortalError):
    status_code = 428


class StorageUnavailable(PortalError):
    status_code = 503
