__all__ = [
    "Dispatcher",
    "StageRunner",
    "ScheduleRunner",
    "Stage",
    "Outcome",
    "Report",
    "compute_report",
    "percentile",
    "render_report",
]


from .core import ScheduleRunner, StageRunner
from .dispatcher import Dispatcher
from .metrics import compute_report, percentile
from .models import Outcome, Report, Stage
from .rendering import render_report
