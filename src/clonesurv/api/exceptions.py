"""Public exceptions for clonesurv API."""


class ClonesurvError(Exception):
    """Base class for all user-facing clonesurv errors."""


class ClonesurvValidationError(ClonesurvError):
    """Raised when user-provided config or input data is invalid."""


class ClonesurvArtifactError(ClonesurvError):
    """Raised when artifact save/load operations fail."""


class ClonesurvModelError(ClonesurvError):
    """Raised when a statistical library fails to fit a model."""


class ClonesurvNotImplementedError(ClonesurvError):
    """Raised by API surfaces that are intentionally not implemented yet."""
