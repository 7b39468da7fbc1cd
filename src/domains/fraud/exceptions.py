"""Exception hierarchy for the fraud risk engine."""

from typing import Any


class FraudEngineError(Exception):
    """Base exception for all risk engine errors."""

    retryable: bool = False


class ConfigError(FraudEngineError):
    """Raised when a fraud rule definition is malformed or of an unknown type.

    Never fatal to a transaction: the rule is skipped and reported as a warning.
    """

    def __init__(self, rule_name: str, message: str) -> None:
        super().__init__(f"{rule_name}: {message}")
        self.rule_name = rule_name
        self.message = message


class InvalidTransaction(FraudEngineError):
    """Raised when a transaction is missing required fields or has a non-positive amount."""

    def __init__(self, message: str, transaction_id: str | None = None) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


class ProfileUnavailable(FraudEngineError):
    """Raised when the profile store cannot be reached or times out."""

    retryable = True

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"Profile for {user_id} unavailable: {reason}")
        self.user_id = user_id
        self.reason = reason


class PersistenceError(FraudEngineError):
    """Raised when alert storage or the profile commit fails.

    The computed scoring result is attached so the host can retry persistence
    independently of scoring.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        failures: list[str] | None = None,
        result: Any = None,
    ) -> None:
        super().__init__(message)
        self.failures = failures or []
        self.result = result
