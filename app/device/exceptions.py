"""
Errors surfaced by the field app core.

Network-facing failures are converted into one of these before they leave
the sync engine or the session manager, so the UI never has to handle raw
``httpx`` exceptions. None of them is fatal: the pending store is only ever
cleared after a fully confirmed upload.
"""


class FieldAppError(Exception):
    code = "FIELD_APP_ERROR"
    retryable = True

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class ValidationError(FieldAppError):
    """The input is malformed; correct it and try again."""

    code = "VALIDATION_ERROR"
    retryable = False


class NotFound(FieldAppError):
    """UIN not found. Please contact your local administration for registration."""

    code = "NOT_FOUND"
    retryable = False


class Unauthenticated(FieldAppError):
    """Your session has expired. Please sign in again."""

    code = "UNAUTHENTICATED"


class Offline(FieldAppError):
    """Please connect to the internet before proceeding further."""

    code = "OFFLINE"


class TransportFailure(FieldAppError):
    """The server did not send a usable response. Your records are kept."""

    code = "TRANSPORT_FAILURE"


class ServerFault(FieldAppError):
    """The server ran into an error. Your records are kept."""

    code = "SERVER_FAULT"


class SyncInProgress(FieldAppError):
    """An upload is already running."""

    code = "SYNC_IN_PROGRESS"


class PartialBatchFailure(FieldAppError):
    """Some records were rejected by the server."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, result, message: str = ""):
        super().__init__(message or f"{len(result.failed)} of {result.total} records were not accepted")
        self.result = result
