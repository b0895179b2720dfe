"""Store backends for glucosync.

Available backends:
    InMemoryVitalSignsPlatform — process-local vital-signs platform
    InMemoryCarePlanBackend    — process-local care-plan store
    PostgresCarePlanBackend    — care-plan store on Postgres (asyncpg)
"""

from glucosync.glucose.backends.memory import (
    InMemoryCarePlanBackend,
    InMemoryVitalSignsPlatform,
)
from glucosync.glucose.backends.postgres import PostgresCarePlanBackend

__all__ = [
    "InMemoryCarePlanBackend",
    "InMemoryVitalSignsPlatform",
    "PostgresCarePlanBackend",
]
