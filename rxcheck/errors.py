"""
Error taxonomy shared by the resolver, the interaction engine and the CLI.
"""


class RxCheckError(Exception):
    """Base class for all rxcheck errors."""
    pass


class ValidationError(RxCheckError):
    """Caller input is malformed. Raised before any store or upstream access."""
    pass


class DrugNotFoundError(RxCheckError):
    """No drug matched the name, locally or upstream."""

    def __init__(self, name: str):
        super().__init__(f"No drug found matching '{name}'")
        self.name = name


class UpstreamError(RxCheckError):
    """An upstream service rejected or failed a request. Never cached."""
    pass


class TransientError(UpstreamError):
    """An upstream service is unreachable, overloaded or timing out. Safe to retry later."""
    pass


class CircuitOpenError(TransientError):
    """Calls are being short-circuited because the upstream keeps failing."""
    pass


class MalformedResponseError(RxCheckError):
    """The reasoning service returned content that could not be parsed."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw
