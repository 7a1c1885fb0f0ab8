"""Error taxonomy shared by the theming, image and composite pipelines."""


class ReskinError(Exception):
    """Base error carrying a short machine code and a human reason."""

    def __init__(self, code: str, reason: str):
        super().__init__(reason)
        self.code = code
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


class ValidationError(ReskinError):
    """Missing or blank required input. Raised before any mutation."""
    pass


class PreconditionError(ReskinError):
    """Wrong deck/card state, missing confirmation or missing upstream asset."""
    pass


class ThemingFailedError(ReskinError):
    """A run-level fault aborted a theming run."""

    def __init__(self, reason: str):
        super().__init__("theming-failed", reason)


class ProviderError(Exception):
    """Transient failure from an external model or HTTP provider."""
    pass


def error_message(error: BaseException, fallback: str) -> str:
    """Text stored on a row for a caught error."""
    if isinstance(error, ReskinError):
        return error.reason or fallback
    message = str(error).strip()
    return message or fallback
