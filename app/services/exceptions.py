"""
Domain exceptions raised by the ledger services.

Each carries the HTTP status the API layer answers with; the handler is
registered in app.main.
"""


class LedgerError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(LedgerError):
    status_code = 404


class Conflict(LedgerError):
    status_code = 409


class Forbidden(LedgerError):
    status_code = 403


class QuotaExceeded(Forbidden):
    def __init__(self, detail: str = "Quota limit exceeded"):
        super().__init__(detail)


class InvalidStateTransition(LedgerError):
    status_code = 400


class InsufficientFunds(LedgerError):
    def __init__(self, detail: str = "Insufficient funds"):
        super().__init__(detail)


class InvalidInput(LedgerError):
    status_code = 422
