"""Pure admissibility check for wallet debits."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Admissible:
    """The debit fits; ``remaining`` is the balance after it."""

    remaining: int


@dataclass(frozen=True)
class Insufficient:
    """The debit does not fit; ``shortfall`` is the missing amount."""

    shortfall: int


def evaluate(current_balance: int, requested_debit: int) -> Admissible | Insufficient:
    """Decide whether ``requested_debit`` can be taken from ``current_balance``.

    Both values are integer minor units.
    """
    if isinstance(current_balance, bool) or not isinstance(current_balance, int):
        raise ValueError("current_balance must be an integer amount in minor units")
    if isinstance(requested_debit, bool) or not isinstance(requested_debit, int):
        raise ValueError("requested_debit must be an integer amount in minor units")
    if current_balance < 0:
        raise ValueError("current_balance must not be negative")
    if requested_debit <= 0:
        raise ValueError("requested_debit must be positive")
    remaining = current_balance - requested_debit
    if remaining >= 0:
        return Admissible(remaining=remaining)
    return Insufficient(shortfall=-remaining)
