"""Errors raised by the admin services, each carrying its HTTP status."""


class LedgerError(Exception):
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {'success': False, 'msg': self.message}
        body.update(self.details)
        return body


class InvalidInput(LedgerError):
    status_code = 400


class InsufficientBalance(LedgerError):
    status_code = 400

    def __init__(self, current_balance, requested_deduction):
        super().__init__(
            'Insufficient balance',
            currentBalance=current_balance,
            requestedDeduction=requested_deduction
        )
        self.current_balance = current_balance
        self.requested_deduction = requested_deduction


class NotFound(LedgerError):
    status_code = 404


class Forbidden(LedgerError):
    status_code = 403


class Conflict(LedgerError):
    status_code = 409


class GatewayError(LedgerError):
    status_code = 502
