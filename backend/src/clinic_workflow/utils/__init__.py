"""
Utility modules for the workflow engine.

Currently the clinic time zone helpers shared by every "today" comparison.
"""

from clinic_workflow.utils.datetime_utils import CLINIC_TZ, clinic_now, clinic_today

__all__ = ['CLINIC_TZ', 'clinic_now', 'clinic_today']
