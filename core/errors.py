"""
Exceptions raised by the intake engine and its collaborators.

Validation failures are not exceptions: validators return ``Rejected``.
"""


class RecordStoreError(Exception):
    """Raised when the record store cannot read or write a record."""

    def __init__(self, operation: str, identity: str, cause: Exception = None):
        self.operation = operation
        self.identity = identity
        self.cause = cause
        message = f"{operation} failed for {identity}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class GenerationError(Exception):
    """Raised when the text-generation model is unavailable or fails."""

    def __init__(self, kind: str, message: str = None):
        self.kind = kind
        super().__init__(message or f"Generation failed ({kind})")


class TransportError(Exception):
    """Raised by an outbound channel when a message cannot be delivered."""

    def __init__(self, identity: str, message: str = None):
        self.identity = identity
        super().__init__(message or f"Could not deliver message to {identity}")


class FlowStateError(Exception):
    """Raised when a session holds a flow state the router cannot handle."""

    def __init__(self, identity: str, detail: str):
        self.identity = identity
        self.detail = detail
        super().__init__(f"Invalid flow state for {identity}: {detail}")
