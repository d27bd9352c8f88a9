import enum

SUM_TOLERANCE = 1e-13  #: maximum deviation from 1 of a row of a distribution

YEAR_VARIABLE = "YEAR"  #: default name of the per-slice year variable
TIME_NAMES = ("time", "Time", "TIME", "t")


class YearPosition(enum.Enum):
    #: The current year is the year at the start of the time step
    START_OF_TIMESTEP = enum.auto()

    #: The current year is the year at the end of the time step
    END_OF_TIMESTEP = enum.auto()
