import datetime
import argparse
import sys
from typing import Optional, Sequence
import logging

import numpy
import cftime

import pydynvar
import pydynvar.config
import pydynvar.manager


def _as_time(value, calendar: str) -> cftime.datetime:
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    return cftime.datetime(*value.timetuple()[:6], calendar=calendar)


def run(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(description='Step through time and report the values of dynamic variables')
    parser.add_argument('configuration', help='Path to configuration file in yaml format')
    parser.add_argument('-f', '--force', action='store_true', help='Continue even if unknown configuration settings are encountered')
    parser.add_argument('-r', '--report', type=int, help='Reporting interval', default=1)
    parser.add_argument('-l', '--log', type=str, help='Log level', choices=('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'), default='INFO')
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log.upper())
    logger = logging.getLogger()

    config = pydynvar.config.configure(args.configuration)

    calendar = config.get('time/calendar', 'standard')
    start = _as_time(config.require('time/start'), calendar)
    stop = _as_time(config.require('time/stop'), calendar)
    timestep = datetime.timedelta(seconds=config.require('time/timestep'))

    datasets = {}
    logger.info('Opening datasets...')
    dataset_config = config.require('datasets')
    for name in dataset_config:
        datasets[name] = dataset_config.get_dataset(name, logger=logger.getChild(name))

    manager = pydynvar.manager.DynamicInputManager()
    manager.set_logger(logger.getChild('input_manager'))
    targets = {}
    logger.info('Creating dynamic variables...')
    variable_config = config.require('variables')
    for name in variable_config:
        variable = variable_config.get_variable(name, datasets, logger=logger)
        targets[name] = numpy.empty(variable.shape)
        manager.add(variable, targets[name])

    unused = config.check()
    if unused:
        logger.log(logging.WARNING if args.force else logging.ERROR, 'The following setting(s) in %s are not recognized:' % (args.configuration,))
        for path in unused:
            logger.log(logging.WARNING if args.force else logging.ERROR, '- %s' % path)
        if not args.force:
            logger.error('If you want to ignore these settings, provide the argument -f/--force.')
            sys.exit(2)
        logger.warning('The run will continue because you specified -f/--force, but these settings will not be used.')

    def report():
        logger.info(time)
        for name, values in targets.items():
            logger.info('- %s: minimum %s, mean %s, maximum %s' % (name, values.min(), values.mean(), values.max()))

    time = start
    istep = 0
    logger.info('Starting at %s' % time)
    manager.update(time, timestep)
    report()
    while time < stop:
        time += timestep
        manager.update(time, timestep)
        istep += 1
        if args.report != 0 and istep % args.report == 0:
            report()

    for dataset in datasets.values():
        dataset.close()
