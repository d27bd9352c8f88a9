from typing import Optional, Sequence, Tuple, Union
import datetime

import numpy as np
import cftime

from .constants import YearPosition
from .exceptions import ConfigurationError, NotReadyError


def fractional_year(time: Union[cftime.datetime, datetime.date]) -> float:
    """Return the year of the given time plus the fraction of that year that
    has elapsed, taking the calendar of the time into account."""
    if not isinstance(time, cftime.datetime):
        time = cftime.datetime(*time.timetuple()[:6], calendar="standard")
    start = cftime.datetime(time.year, 1, 1, calendar=time.calendar)
    stop = cftime.datetime(time.year + 1, 1, 1, calendar=time.calendar)
    elapsed = (time - start).total_seconds()
    return time.year + elapsed / (stop - start).total_seconds()


class TimeInfo:
    """Position of the simulated time relative to the years of the slices in a
    dataset.

    Args:
        years: year of every slice; this must increase strictly
        year_position: whether the current year is determined by the start or by
            the end of the time step
    """

    def __init__(
        self,
        years: Sequence[int],
        year_position: YearPosition = YearPosition.START_OF_TIMESTEP,
    ):
        years = np.asarray(years)
        if years.ndim != 1 or years.size == 0:
            raise ConfigurationError(
                f"Years must be a non-empty one-dimensional sequence, not {years!r}"
            )
        if not np.issubdtype(years.dtype, np.integer):
            if not (years == np.round(years)).all():
                raise ConfigurationError(f"Years must be whole numbers, not {years}")
            years = years.astype(int)
        if (np.diff(years) <= 0).any():
            raise ConfigurationError(f"Years must increase strictly, not {years}")
        self.years = years
        self.year_position = year_position
        self.current_year: Optional[float] = None

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(years={self.years[0]}-{self.years[-1]},"
            f" nyears={self.nyears}, current_year={self.current_year})"
        )

    @property
    def nyears(self) -> int:
        return self.years.size

    def get_year(self, index: int) -> int:
        return int(self.years[index])

    def set_current_year(self, year: float):
        self.current_year = float(year)

    def update(
        self,
        time: Union[cftime.datetime, datetime.date],
        timestep: Optional[datetime.timedelta] = None,
    ):
        """Set the current year from the simulated time.

        Args:
            time: time at the start of the time step
            timestep: length of the time step. This is required if the current
                year is determined by the end of the time step.
        """
        if self.year_position == YearPosition.END_OF_TIMESTEP:
            if timestep is None:
                raise ConfigurationError(
                    "The time step must be provided when the current year is"
                    " taken at the end of the time step"
                )
            time = time + timestep
        self.set_current_year(fractional_year(time))

    def _year(self, current_year: Optional[float]) -> float:
        if current_year is not None:
            return current_year
        if self.current_year is None:
            raise NotReadyError("The current year has not been set yet")
        return self.current_year

    def is_before_time_series(self, current_year: Optional[float] = None) -> bool:
        return self._year(current_year) < self.years[0]

    def is_after_time_series(self, current_year: Optional[float] = None) -> bool:
        return self._year(current_year) >= self.years[-1]

    def is_within_bounds(self, current_year: Optional[float] = None) -> bool:
        year = self._year(current_year)
        return not (
            self.is_before_time_series(year) or self.is_after_time_series(year)
        )

    def resolve_nearest(self, current_year: Optional[float] = None) -> int:
        """Return the index of the last slice whose year does not exceed the
        current year. Before the time series starts, this is the first slice."""
        year = self._year(current_year)
        index = int(self.years.searchsorted(year, side="right")) - 1
        return max(index, 0)

    def resolve_bracket(
        self, current_year: Optional[float] = None
    ) -> Tuple[int, int, float]:
        """Return the indices of the slices just before and just after the
        current year, and the weight of the latter for linear interpolation.

        Outside the time series, both indices point to the nearest end and the
        weight is 0.
        """
        year = self._year(current_year)
        if self.is_before_time_series(year):
            return 0, 0, 0.0
        if self.is_after_time_series(year):
            last = self.nyears - 1
            return last, last, 0.0
        lower = int(self.years.searchsorted(year, side="right")) - 1
        upper = lower + 1
        weight = (year - self.years[lower]) / (self.years[upper] - self.years[lower])
        return lower, upper, float(weight)
