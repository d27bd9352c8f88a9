from typing import Callable, List, Optional, Sequence, Tuple, Union
import functools
import glob
import logging

import numpy as np
import xarray
import cftime

from .constants import TIME_NAMES, YEAR_VARIABLE, YearPosition
from .exceptions import ConfigurationError
from .time_info import TimeInfo


@xarray.register_dataset_accessor("dynvar")
class DynVarAccessor:
    def __init__(self, xarray_obj: xarray.Dataset):
        self._obj = xarray_obj

    @functools.cached_property
    def time(self) -> Optional[xarray.DataArray]:
        for name, coord in self._obj.coords.items():
            if coord.ndim != 1 or coord.size == 0:
                continue
            if (
                coord.attrs.get("standard_name") == "time"
                or coord.attrs.get("axis") == "T"
                or name in TIME_NAMES
            ):
                return coord
            if np.issubdtype(coord.dtype, np.datetime64):
                return coord
            if coord.dtype == object and isinstance(
                coord.values.flat[0], cftime.datetime
            ):
                return coord
        return None

    def years(self, year_variable: str = YEAR_VARIABLE) -> Tuple[str, np.ndarray]:
        """Return the name of the time dimension and the year of every slice.

        Years are taken from the variable `year_variable` if the dataset has it,
        otherwise from the time coordinate.
        """
        if year_variable in self._obj.variables:
            years = self._obj[year_variable]
            if years.ndim != 1:
                raise ConfigurationError(
                    f"{year_variable} should have one dimension (time),"
                    f" but it has dimensions {years.dims}"
                )
            return years.dims[0], years.values
        time = self.time
        if time is None:
            raise ConfigurationError(
                f"Dataset has neither a {year_variable} variable"
                " nor a time coordinate"
            )
        if not (np.issubdtype(time.dtype, np.datetime64) or time.dtype == object):
            raise ConfigurationError(
                f"Time coordinate {time.name} has not been decoded into dates"
            )
        return time.dims[0], time.dt.year.values


class DynamicFile:
    """Dataset with a time axis from which slices of dynamic variables are read.

    A single instance is shared by all variables read from the same dataset. It
    does not own the underlying :class:`xarray.Dataset`; that is closed by
    whoever created it, e.g., by calling :meth:`close`.

    Args:
        ds: dataset to read from
        year_variable: name of the variable with the year of each slice. If the
            dataset does not contain it, the years of the time coordinate are used.
        year_position: whether the current year is determined by the start or by
            the end of the time step
        name: name used in log and error messages. It defaults to the path the
            dataset was read from.
        logger: target for log messages
    """

    def __init__(
        self,
        ds: xarray.Dataset,
        year_variable: str = YEAR_VARIABLE,
        year_position: YearPosition = YearPosition.START_OF_TIMESTEP,
        name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.ds = ds
        self.sources: List[xarray.Dataset] = [ds]
        if name is None:
            name = ds.encoding.get("source", "in-memory dataset")
        self.name = name
        self.logger = logger or logging.getLogger()
        self.time_dim, years = ds.dynvar.years(year_variable)
        try:
            self.time_info = TimeInfo(years, year_position)
        except ConfigurationError as e:
            raise ConfigurationError(f"{self.name}: {e}") from e
        self.logger.info(
            f"{self.name}: {self.slice_count} slices"
            f" ({self.time_info.get_year(0)}-{self.time_info.get_year(-1)})"
            f" along dimension {self.time_dim}"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"

    @property
    def slice_count(self) -> int:
        return self.time_info.nyears

    def year_of(self, index: int) -> int:
        return self.time_info.get_year(index)

    def read_slice(
        self, name: str, dim1_name: str, index: int
    ) -> Tuple[Optional[np.ndarray], bool]:
        """Read a single time slice of a variable.

        Args:
            name: name of the variable
            dim1_name: name of the spatial dimension. This will be the first
                dimension of the returned array.
            index: time index of the slice

        Returns:
            the values of the slice (``None`` if the variable does not exist)
            and a flag indicating whether the variable was found
        """
        if name not in self.ds.variables:
            return None, False
        if not 0 <= index < self.slice_count:
            raise IndexError(
                f"Slice {index} of {name} requested, but {self.name}"
                f" has {self.slice_count} slices"
            )
        variable = self.ds[name]
        for dim in (self.time_dim, dim1_name):
            if dim not in variable.dims:
                raise ConfigurationError(
                    f"{name} in {self.name} does not have dimension {dim}"
                    f" (its dimensions are {variable.dims})"
                )
        values = variable.isel({self.time_dim: index}).transpose(dim1_name, ...)
        return np.asarray(values.values), True

    def close(self):
        """Close the dataset and the files it was read from.

        Files that are still used by another open :class:`DynamicFile` (opened
        from the same path by :func:`from_nc`) stay open.
        """
        open_dynamic_files[:] = [
            (key, dynfile)
            for key, dynfile in open_dynamic_files
            if dynfile is not self
        ]
        in_use = [ds for _, dynfile in open_dynamic_files for ds in dynfile.sources]
        sources = [ds for ds in self.sources if not any(ds is d for d in in_use)]
        if not any(self.ds is source for source in self.sources):
            # concatenation of several files
            self.ds.close()
        for ds in sources:
            ds.close()
        open_nc_files[:] = [
            (key, ds)
            for key, ds in open_nc_files
            if not any(ds is source for source in sources)
        ]


open_nc_files = []
open_dynamic_files = []


def _open(path, preprocess=None, **kwargs):
    key = (path, preprocess, kwargs.copy())
    for k, ds in open_nc_files:
        if k == key:
            return ds
    ds = xarray.open_dataset(path, **kwargs)
    if preprocess:
        ds = preprocess(ds)
    open_nc_files.append((key, ds))
    return ds


def from_nc(
    paths: Union[str, Sequence[str]],
    preprocess: Optional[Callable[[xarray.Dataset], xarray.Dataset]] = None,
    year_variable: str = YEAR_VARIABLE,
    year_position: YearPosition = YearPosition.START_OF_TIMESTEP,
    logger: Optional[logging.Logger] = None,
    **kwargs,
) -> DynamicFile:
    """Open one or more NetCDF files as a source of dynamic variables.

    Args:
        paths: single file path, a pathname pattern containing `*` and/or `?`, or a
            sequence of file paths. If multiple paths are provided (or the pattern
            resolves to multiple valid path names), the files will be concatenated
            along their time dimension.
        preprocess: function that transforms the :class:`xarray.Dataset` opened for
            every path provided. This can be used to modify the datasets before
            concatenation in time is attempted, for instance, to cut off time indices
            that overlap between files.
        year_variable: name of the variable with the year of each slice
        year_position: whether the current year is determined by the start or by
            the end of the time step
        logger: target for log messages
        **kwargs: additional keyword arguments to be passed to
            :func:`xarray.open_dataset`

    Repeated calls with the same arguments return the same :class:`DynamicFile`
    until it is closed.
    """
    kwargs.setdefault("decode_times", True)
    kwargs["use_cftime"] = True
    kwargs["cache"] = False
    if isinstance(paths, str):
        pattern = paths
        paths = sorted(glob.glob(pattern))
        if not paths:
            raise ConfigurationError(f"No files found matching {pattern!r}")
    key = (tuple(paths), preprocess, year_variable, year_position, kwargs.copy())
    for k, dynfile in open_dynamic_files:
        if k == key:
            return dynfile
    datasets = [_open(path, preprocess, **kwargs) for path in paths]
    if len(datasets) == 1:
        ds = datasets[0]
        name = paths[0]
    else:
        time_dim, _ = datasets[0].dynvar.years(year_variable)
        ds = xarray.concat(
            sorted(datasets, key=lambda d: d.dynvar.years(year_variable)[1][0]),
            dim=time_dim,
            data_vars="minimal",
            coords="minimal",
            compat="override",
            combine_attrs="drop_conflicts",
        )
        name = ", ".join(paths)
    dynfile = DynamicFile(
        ds,
        year_variable=year_variable,
        year_position=year_position,
        name=name,
        logger=logger,
    )
    dynfile.sources = datasets
    open_dynamic_files.append((key, dynfile))
    return dynfile
