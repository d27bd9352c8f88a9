"""Exceptions raised while staging dynamic variables.

None of these are recoverable: they signal a configuration problem, a corrupt
or mismatched input dataset, or a caller that does not respect the
read-then-query protocol.
"""


class DynamicVariableError(Exception):
    """Base exception class."""


class ConfigurationError(DynamicVariableError):
    """Raised for an invalid combination of settings, e.g., shape and
    distribution validation, or an unusable time axis."""


class DataMissingError(DynamicVariableError):
    """Raised when a variable is absent from the dataset."""


class DistributionInvalidError(DynamicVariableError):
    """Raised when a row of a 2D distribution does not sum to 1."""


class NotReadyError(DynamicVariableError):
    """Raised when a value is requested before the data it depends on has
    been read."""


class InvariantViolation(DynamicVariableError):
    """Raised when a collaborator hands out a value it should never produce,
    such as an interpolation weight outside [0, 1]."""
