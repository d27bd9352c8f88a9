from typing import List, Optional, Tuple, Union
import datetime
import logging

import numpy as np
import cftime

from .variable import DynamicVariable
from .exceptions import ConfigurationError


class DynamicInputManager:
    """Collection of dynamic variables that are brought up to date together at
    the start of every time step.

    This must be used from a single serial context: the datasets are not safe
    for concurrent reads and the variables update their cached slices without
    any synchronization.
    """

    def __init__(self):
        self._fields: List[Tuple[DynamicVariable, Optional[np.ndarray]]] = []
        self._logger = logging.getLogger()

    def add(self, variable: DynamicVariable, target: Optional[np.ndarray] = None):
        """Register a dynamic variable.

        Args:
            variable: variable to keep up to date
            target: array that will receive the current value of the variable
                after each call to :meth:`update`
        """
        if target is not None and target.shape != variable.shape:
            raise ConfigurationError(
                f"Target for {variable.name} has shape {target.shape},"
                f" but the variable has shape {variable.shape}"
            )
        self._fields.append((variable, target))

    @property
    def variables(self) -> List[DynamicVariable]:
        return [variable for variable, _ in self._fields]

    def update(
        self,
        time: Union[cftime.datetime, datetime.date],
        timestep: Optional[datetime.timedelta] = None,
    ):
        """Update all registered variables to the current time.

        Args:
            time: time at the start of the time step
            timestep: length of the time step, required for datasets that take the
                current year at the end of the time step
        """
        datasets = {}
        for variable, _ in self._fields:
            datasets.setdefault(id(variable.dataset), variable.dataset)
        for dataset in datasets.values():
            dataset.time_info.update(time, timestep)

        for variable, target in self._fields:
            self._logger.debug(f"updating {variable.name}")
            variable.read_if_needed()
            if target is not None:
                variable.current_value(out=target)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def set_logger(self, logger: logging.Logger):
        self._logger = logger
