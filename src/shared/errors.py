"""Error taxonomy shared by every BotStore context.

Validation, not-found and invalid-transition errors are never retried.
``TransientError`` is the only error the retry policy swallows, and only up to
its configured bound. Idempotent replays are not errors at all: repositories
return a result that reports "already <state>" instead of raising.
"""


class BotStoreError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class ValidationError(BotStoreError):
    """Malformed or missing input, always reported per field.

    ``messages`` maps a field name to every message raised against it, so a
    single request reports all violated fields at once.
    """

    code = "validation_error"

    def __init__(self, messages: dict[str, list[str]]):
        self.messages = {field: list(errors) for field, errors in messages.items()}
        super().__init__(", ".join(sorted(self.messages)))

    def to_dict(self) -> dict:
        return {"error": self.code, "errors": self.messages}


class NotFoundError(BotStoreError):
    code = "not_found"


class InvalidTransitionError(BotStoreError):
    """The requested change is unreachable from the current state."""

    code = "invalid_transition"

    def __init__(self, message: str, current: str | None = None, target: str | None = None, **context):
        super().__init__(message, **context)
        self.current = current
        self.target = target


class AmountMismatchError(BotStoreError):
    """Evidence amount fell outside tolerance. Never auto-corrected."""

    code = "amount_mismatch"

    def __init__(self, message: str, expected: float, received: float, **context):
        super().__init__(message, expected=expected, received=received, **context)
        self.expected = expected
        self.received = received
        self.result = None

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.result is not None:
            payload["result"] = self.result.to_dict()
        return payload


class TransientError(BotStoreError):
    """Store or cache hiccup; safe to retry."""

    code = "transient_error"


class ConflictError(BotStoreError):
    """Duplicate processing or a lost race that could not be resolved."""

    code = "conflict"


class DuplicateKeyError(ConflictError):
    """A unique constraint rejected a write."""

    code = "duplicate_key"

    def __init__(self, table: str, columns: tuple[str, ...]):
        super().__init__(f"Duplicate value for {table}({', '.join(columns)})", table=table)
        self.table = table
        self.columns = columns
