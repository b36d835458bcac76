"""vestry: resumable admin forms and civil-time scheduling for a chat bot."""

from .civil_time import FixedClock, SystemClock, last_day_of_month, wall_clock_fields
from .config import VestryConfig, load_config
from .dispatch import WorkflowDispatcher
from .records import InMemoryRecordSource, RecordSource
from .results import Outcome
from .scheduling import Scheduler
from .store import open_store
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "FixedClock",
    "InMemoryRecordSource",
    "Outcome",
    "RecordSource",
    "Scheduler",
    "SystemClock",
    "VestryConfig",
    "WorkflowDispatcher",
    "get_transport",
    "last_day_of_month",
    "load_config",
    "open_store",
    "wall_clock_fields",
]
