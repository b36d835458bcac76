"""The concrete data-entry forms."""

from .base import FormContext, FormHandler
from .prayer import PrayerForm
from .schedule import ScheduleForm
from .sunday_service import SundayServiceForm
from .youth_report import YouthReportForm

FORMS = (SundayServiceForm, ScheduleForm, YouthReportForm, PrayerForm)

__all__ = [
    "FORMS",
    "FormContext",
    "FormHandler",
    "PrayerForm",
    "ScheduleForm",
    "SundayServiceForm",
    "YouthReportForm",
]
