"""
Exception types for hazard-map.

Feature assembly and splitting errors abort a run before training.
Evaluation and export errors leave already computed results valid.
"""


class HazardMapError(Exception):
    """Base class for hazard-map errors."""

    pass


class MissingCovariateError(HazardMapError):
    """Raised when a declared band name has no matching covariate source."""

    def __init__(self, missing, available=()):
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(
            f"No covariate found for band(s) {self.missing}; "
            f"available: {self.available}"
        )


class InsufficientEvaluationDataError(HazardMapError):
    """Raised when a training or held-out class pool is empty."""

    pass


class OutsideExtentError(HazardMapError):
    """Raised when points fall outside a raster and the policy is 'error'."""

    pass


class ExportFailure(HazardMapError):
    """Raised when persisting an artifact fails after computation succeeded."""

    def __init__(self, artifact: str, message: str):
        self.artifact = artifact
        super().__init__(f"Export of '{artifact}' failed: {message}")
