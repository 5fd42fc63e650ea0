"""
Exceptions raised while building, signing and broadcasting transactions.

Every failure is terminal for the build that raised it. ``retryable`` tells
callers whether the same request may succeed later (network-class errors)
or whether the input itself has to change (validation and balance errors).
"""

from __future__ import annotations


class TransactionBuildError(Exception):
    """Base class for all transaction build failures."""

    retryable = False


class MissingParameterError(TransactionBuildError):
    pass


class UnknownStrategyError(TransactionBuildError):
    pass


class InvalidRecipientError(TransactionBuildError):
    """Malformed recipient address, negative or non-integer amount."""


class NoSpendableOutputsError(TransactionBuildError):
    pass


class NoTokenUtxosError(TransactionBuildError):
    pass


class NoFeeUtxosError(TransactionBuildError):
    pass


class InsufficientFundsError(TransactionBuildError):
    def __init__(self, total_input: int, required: int, fee: int):
        self.total_input = total_input
        self.required = required
        self.fee = fee
        super().__init__(
            f"Insufficient funds: total input {total_input}, "
            f"need {required} (including estimated fee {fee})"
        )


class InsufficientTokenBalanceError(TransactionBuildError):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient token balance: available {available}, need {required}")


class InsufficientFeeBalanceError(TransactionBuildError):
    def __init__(self, total_input: int, required: int, fee: int):
        self.total_input = total_input
        self.required = required
        self.fee = fee
        super().__init__(
            f"Insufficient XEC for token send: total input {total_input}, "
            f"need {required} (including estimated fee {fee})"
        )


class ConservationError(TransactionBuildError):
    """Token amounts in the announcement do not add up to the spent atoms."""


class AnnouncementEncodingError(TransactionBuildError):
    pass


class TransactionSigningError(TransactionBuildError):
    pass


class InventoryFetchFailedError(TransactionBuildError):
    retryable = True


class BroadcastFailedError(TransactionBuildError):
    retryable = True
