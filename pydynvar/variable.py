from typing import Optional, Sequence, Tuple, TYPE_CHECKING
import numbers
import logging

import numpy as np

from .constants import SUM_TOLERANCE
from .exceptions import (
    ConfigurationError,
    DataMissingError,
    DistributionInvalidError,
    NotReadyError,
    InvariantViolation,
)

if TYPE_CHECKING:
    from .dataset import DynamicFile
    from .time_info import TimeInfo


class DynamicVariable:
    """Variable that is read from a dataset with a time axis and that changes as
    simulated time progresses.

    Every time step, :meth:`read_if_needed` must be called once after the time
    information of the dataset has been updated. After that, :meth:`current_value`
    can be used as often as needed to obtain the value for the current time.

    Args:
        dataset: dataset to read from. This is shared between variables and not
            closed by them.
        name: name of the variable in the dataset
        dim1_name: name of the spatial dimension in the dataset. This will be the
            first dimension of the variable.
        conversion_factor: divisor applied to the values in the dataset
        validate_distribution: check that values sum to 1 across the second
            dimension. This requires the variable to be 2D.
        shape: shape of the variable (one or two dimensions)
        logger: target for log messages
    """

    __slots__ = (
        "dataset",
        "name",
        "dim1_name",
        "conversion_factor",
        "validate_distribution",
        "shape",
        "logger",
    )

    def __init__(
        self,
        dataset: "DynamicFile",
        name: str,
        dim1_name: str,
        conversion_factor: float = 1.0,
        validate_distribution: bool = False,
        shape: Sequence[int] = (),
        logger: Optional[logging.Logger] = None,
    ):
        shape = tuple(shape)
        if len(shape) not in (1, 2):
            raise ConfigurationError(
                f"{name} must have one or two dimensions, but its shape is {shape}"
            )
        if not all(isinstance(n, numbers.Integral) and n > 0 for n in shape):
            raise ConfigurationError(
                f"{name} has shape {shape}; all extents must be positive integers"
            )
        if validate_distribution and len(shape) != 2:
            raise ConfigurationError(
                f"{name} has shape {shape}; a distribution can only be validated"
                " for variables with two dimensions"
            )
        if conversion_factor == 0:
            raise ConfigurationError(f"{name} has a conversion factor of 0")
        self.dataset = dataset
        self.name = name
        self.dim1_name = dim1_name
        self.conversion_factor = conversion_factor
        self.validate_distribution = validate_distribution
        self.shape: Tuple[int, ...] = shape
        if logger is None:
            logger = dataset.logger.getChild(name)
        self.logger = logger

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, shape={self.shape})"

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def time_info(self) -> "TimeInfo":
        return self.dataset.time_info

    def read_if_needed(self) -> bool:
        """Read the time slice(s) required for the current time if they have not
        been read yet.

        Returns:
            whether new data was obtained
        """
        raise NotImplementedError

    def current_value(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return the value at the current time.

        Args:
            out: array to write the value to. It must have the shape of the
                variable. If not provided, a new array is allocated.
        """
        raise NotImplementedError

    def _output(self, out: Optional[np.ndarray]) -> np.ndarray:
        if out is None:
            return np.empty(self.shape)
        if out.shape != self.shape:
            raise ConfigurationError(
                f"Output array for {self.name} has shape {out.shape},"
                f" but {self.shape} is required"
            )
        return out

    def read_time_slice(self, index: int) -> np.ndarray:
        """Read a single time slice, convert its units and, if requested, validate
        that it describes a distribution.

        Args:
            index: time index of the slice in the dataset

        Returns:
            a new array with the shape of the variable
        """
        self.logger.info(
            f"Reading {self.name} at index {index}"
            f" (year {self.dataset.year_of(index)}) from {self.dataset.name}"
        )
        raw, found = self.dataset.read_slice(self.name, self.dim1_name, index)
        if not found:
            raise DataMissingError(
                f"{self.name} not found in {self.dataset.name} (requested at index"
                f" {index}, year {self.dataset.year_of(index)})"
            )

        # The first dimension must match exactly; any trailing dimensions
        # are collapsed into the second
        data = np.asarray(raw, dtype=float)
        extra = self.shape[1] if self.ndim == 2 else 1
        if (
            data.ndim == 0
            or data.shape[0] != self.shape[0]
            or int(np.prod(data.shape[1:])) != extra
        ):
            raise ConfigurationError(
                f"{self.name} at index {index} has shape {data.shape} in"
                f" {self.dataset.name}, which does not match shape {self.shape}"
            )
        data = data.reshape(self.shape) / self.conversion_factor

        if self.validate_distribution:
            self._check_sums_equal_1(data, index)
        return data

    def _check_sums_equal_1(self, data: np.ndarray, index: int):
        sums = data.sum(axis=1)
        bad = np.abs(sums - 1.0) > SUM_TOLERANCE
        if bad.any():
            ibad = int(bad.nonzero()[0][0])
            total = float(sums[ibad])
            raise DistributionInvalidError(
                f"{self.name} at index {index} (year {self.dataset.year_of(index)})"
                f" sums to {total!r} instead of 1 at {self.dim1_name}={ibad}"
                f" ({bad.sum()} of {bad.size} points exceed tolerance"
                f" {SUM_TOLERANCE})"
            )


class UninterpolatedVariable(DynamicVariable):
    """Dynamic variable that takes the value of the last slice at or before the
    current year; no interpolation in time is done.

    :meth:`current_value` raises :class:`NotReadyError` if the current year
    requires a different slice than the one read by the last call to
    :meth:`read_if_needed`.
    """

    __slots__ = ("_cached_index", "_cached_data")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._cached_index: Optional[int] = None
        self._cached_data = np.empty(self.shape)

    @property
    def cached_index(self) -> Optional[int]:
        return self._cached_index

    def read_if_needed(self) -> bool:
        index = self.time_info.resolve_nearest()
        if index == self._cached_index:
            return False
        self._cached_data[...] = self.read_time_slice(index)
        self._cached_index = index
        return True

    def current_value(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        if self._cached_index is None:
            raise NotReadyError(f"{self.name} has not been read yet")
        index = self.time_info.resolve_nearest()
        if index != self._cached_index:
            raise NotReadyError(
                f"{self.name} holds slice {self._cached_index}, but {index} is"
                " needed for the current year; call read_if_needed first"
            )
        out = self._output(out)
        out[...] = self._cached_data
        return out


class InterpolatedVariable(DynamicVariable):
    """Dynamic variable that is linearly interpolated in time between the slices
    that bracket the current year.

    :meth:`current_value` raises :class:`NotReadyError` if the current year
    requires a different pair of slices than the one read by the last call to
    :meth:`read_if_needed`.
    """

    __slots__ = ("_lower_index", "_upper_index", "_lower_data", "_upper_data")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lower_index: Optional[int] = None
        self._upper_index: Optional[int] = None
        self._lower_data = np.empty(self.shape)
        self._upper_data = np.empty(self.shape)

    @property
    def lower_index(self) -> Optional[int]:
        return self._lower_index

    @property
    def upper_index(self) -> Optional[int]:
        return self._upper_index

    def read_if_needed(self) -> bool:
        lower, upper, _ = self.time_info.resolve_bracket()
        if lower == self._lower_index and upper == self._upper_index:
            return False

        # Slices are only committed once all required reads have succeeded
        fresh = {}
        lower_data = self._obtain(lower, fresh)
        upper_data = self._obtain(upper, fresh)
        self._lower_data, self._upper_data = lower_data, upper_data
        self._lower_index, self._upper_index = lower, upper
        return True

    def _obtain(self, index: int, fresh: dict) -> np.ndarray:
        # Reuse a slice that is already cached (e.g., the old upper slice
        # becomes the new lower slice) instead of reading it again.
        # Every returned array is a distinct copy.
        if index in fresh:
            return fresh[index].copy()
        if index == self._lower_index:
            return self._lower_data.copy()
        if index == self._upper_index:
            return self._upper_data.copy()
        fresh[index] = self.read_time_slice(index)
        return fresh[index]

    def current_value(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        if self._lower_index is None:
            raise NotReadyError(f"{self.name} has not been read yet")
        lower, upper, weight = self.time_info.resolve_bracket()
        if lower != self._lower_index or upper != self._upper_index:
            raise NotReadyError(
                f"{self.name} holds slices {self._lower_index} and"
                f" {self._upper_index}, but {lower} and {upper} are needed"
                " for the current year; call read_if_needed first"
            )
        if not 0.0 <= weight <= 1.0:
            raise InvariantViolation(
                f"Interpolation weight {weight!r} for {self.name} between slices"
                f" {lower} and {upper} is outside [0, 1]"
            )
        out = self._output(out)
        np.multiply(self._lower_data, 1.0 - weight, out=out)
        out += weight * self._upper_data
        return out


def create(
    dataset: "DynamicFile",
    name: str,
    dim1_name: str,
    conversion_factor: float = 1.0,
    validate_distribution: bool = False,
    shape: Sequence[int] = (),
    interpolate: bool = False,
    logger: Optional[logging.Logger] = None,
) -> DynamicVariable:
    """Create a dynamic variable that is either interpolated in time, or takes
    the value of the last slice preceding the current time."""
    cls = InterpolatedVariable if interpolate else UninterpolatedVariable
    return cls(
        dataset,
        name,
        dim1_name,
        conversion_factor=conversion_factor,
        validate_distribution=validate_distribution,
        shape=shape,
        logger=logger,
    )
