"""simkernel discrete event simulation kernel.

Core Objects: Simulation, Event, Process, and Resource.
"""

import datetime

import simkernel.time as time
from simkernel.process import Process
from simkernel.resource import Request, Resource
from simkernel.simulation import Simulation
from simkernel.time import AllOf, AnyOf, Event, EventState

__all__ = [
    "AllOf",
    "AnyOf",
    "Event",
    "EventState",
    "Process",
    "Request",
    "Resource",
    "Simulation",
    "time",
]

__title__ = "simkernel"
__version__ = "0.1.0.dev0"
__license__ = "Apache 2.0"
_this_year = datetime.datetime.now(tz=datetime.UTC).date().year
__copyright__ = f"Copyright {_this_year} simkernel Team"
