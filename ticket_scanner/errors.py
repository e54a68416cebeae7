class TicketError(Exception):
    """Base class for failures surfaced to the operator."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StoreError(TicketError):
    status_code = 503


class TicketValidationError(TicketError):
    status_code = 400


class TicketNotFoundError(TicketError):
    status_code = 404


class SpreadsheetError(TicketError):
    status_code = 400


class ScannerError(TicketError):
    status_code = 503


class OperationInProgressError(TicketError):
    status_code = 409
