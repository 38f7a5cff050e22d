# investledger/core/errors.py


class LedgerError(Exception):
    """Base for every error the ledger reports to its callers."""

    code = "ledger_error"

    def __init__(self, message: str = "Ledger operation failed"):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    code = "validation_error"


class DomainError(LedgerError):
    code = "domain_error"


class InsufficientBalance(DomainError):
    code = "insufficient_balance"


class InvalidAmount(DomainError):
    code = "invalid_amount"


class AmountTooLow(DomainError):
    code = "amount_too_low"


class PackageNotFound(DomainError):
    code = "package_not_found"


class NotFound(DomainError):
    code = "not_found"


class AccountNotFound(NotFound):
    code = "account_not_found"


class AccountClosed(DomainError):
    code = "account_closed"


class InvestmentNotFound(NotFound):
    code = "investment_not_found"


class TransactionNotFound(NotFound):
    code = "transaction_not_found"


class NotCancellable(DomainError):
    code = "not_cancellable"


class InvalidTransition(DomainError):
    code = "invalid_transition"


class ConflictError(LedgerError):
    code = "conflict"


class AlreadyProcessed(ConflictError):
    code = "already_processed"


class LedgerSystemError(LedgerError):
    code = "update_failed"

    def __init__(self, message: str = "Update failed. Please try again later."):
        super().__init__(message)
