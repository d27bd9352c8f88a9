from . import time_info
from . import dataset
from . import variable
from . import manager
from .constants import *
from .exceptions import *
from .time_info import TimeInfo, fractional_year
from .dataset import DynamicFile, from_nc
from .variable import DynamicVariable, UninterpolatedVariable, InterpolatedVariable
from .manager import DynamicInputManager
