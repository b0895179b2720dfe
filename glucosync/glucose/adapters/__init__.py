"""Store adapters for glucosync.

Each adapter wraps a backend and exposes the typed operations the sync
engine consumes:

    VitalSignsStore — external platform samples, authorization, background wake
    CarePlanStore   — internal tasks and outcomes
"""

from glucosync.glucose.adapters.care_plan import CarePlanStore
from glucosync.glucose.adapters.vital_signs import VitalSignsStore

__all__ = [
    "CarePlanStore",
    "VitalSignsStore",
]
