class InventoryError(Exception):
    """Base class for errors surfaced to users of the zimmet service."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(InventoryError):
    status_code = 404


class InvalidStateError(InventoryError):
    status_code = 409


class ConfirmationRequired(InventoryError):
    status_code = 428


class RemoteFailure(InventoryError):
    """The store rejected a call. The original error is chained as __cause__."""

    status_code = 503
