from typing import Any, Mapping, Iterator, Optional
import collections.abc
import logging

import yaml

from . import dataset
from . import variable
from .constants import YEAR_VARIABLE, YearPosition
from .exceptions import ConfigurationError

YEAR_POSITIONS = {
    'start': YearPosition.START_OF_TIMESTEP,
    'end': YearPosition.END_OF_TIMESTEP,
}


class Node(collections.abc.Mapping):
    def __init__(self, dictionary: Mapping[str, Any], prefix: str=''):
        self.prefix = prefix
        assert isinstance(dictionary, Mapping)
        self.dictionary = {}
        for name, value in dictionary.items():
            if isinstance(value, Mapping):
                value = Node(value, prefix = '%s%s/' % (self.prefix, name))
            self.dictionary[name] = value
        self.retrieved = set()

    def __getitem__(self, path: str):
        components = path.split('/', 1)
        value = self.dictionary[components[0]]
        self.retrieved.add(components[0])
        if len(components) > 1:
            assert isinstance(value, Node)
            value = value[components[1]]
        return value

    def __iter__(self) -> Iterator:
        return self.dictionary.__iter__()

    def __len__(self) -> int:
        return self.dictionary.__len__()

    def require(self, path: str):
        value = self.get(path)
        if value is None:
            raise ConfigurationError('%s%s is required' % (self.prefix, path))
        return value

    def check(self):
        unused = []
        for name, value in self.dictionary.items():
            if name not in self.retrieved:
                unused.append('%s%s' % (self.prefix, name))
            if isinstance(value, Node):
                unused += value.check()
        return unused

    def get_dataset(self, name: str, logger: Optional[logging.Logger]=None) -> dataset.DynamicFile:
        info = self.require(name)
        if not isinstance(info, Node):
            raise ConfigurationError('%s%s must be a mapping with path and, optionally, year_variable and year_position' % (self.prefix, name))
        year_position = info.get('year_position', 'start')
        if year_position not in YEAR_POSITIONS:
            raise ConfigurationError('%s%s/year_position must be one of %s, not %r' % (self.prefix, name, ', '.join(YEAR_POSITIONS), year_position))
        path = info.require('path')
        if logger is not None:
            logger.info('%s%s = %s' % (self.prefix, name, path))
        return dataset.from_nc(path, year_variable=info.get('year_variable', YEAR_VARIABLE), year_position=YEAR_POSITIONS[year_position], logger=logger)

    def get_variable(self, name: str, datasets: Mapping[str, dataset.DynamicFile], logger: Optional[logging.Logger]=None) -> variable.DynamicVariable:
        info = self.require(name)
        if not isinstance(info, Node):
            raise ConfigurationError('%s%s must be a mapping with dataset, dim1 and shape' % (self.prefix, name))
        source = info.require('dataset')
        if source not in datasets:
            raise ConfigurationError('%s%s/dataset refers to unknown dataset %r' % (self.prefix, name, source))
        shape = info.require('shape')
        if isinstance(shape, int):
            shape = [shape]
        interpolate = info.get('interpolate', False)
        if logger is not None:
            logger.info('%s%s = %s variable %s from %s' % (self.prefix, name, 'interpolated' if interpolate else 'uninterpolated', info.get('variable', name), source))
        return variable.create(
            datasets[source],
            info.get('variable', name),
            info.require('dim1'),
            conversion_factor=info.get('conversion_factor', 1.0),
            validate_distribution=info.get('validate_distribution', False),
            shape=shape,
            interpolate=interpolate,
            logger=logger.getChild(name) if logger is not None else None,
        )


def configure(path: str):
    with open(path) as f:
        settings = yaml.safe_load(f)
    if not isinstance(settings, Mapping):
        raise ConfigurationError('%s should contain a mapping with configuration information, but instead contains %s' % (path, settings))
    return Node(settings)
