"""Glucose sync infrastructure.

Modules:
    engine    — Bidirectional sync engine (busy guard, windowed transfers)
    state     — Observable sync status (busy flag, last sync time)
    dedup     — Sync identity keys for duplicate suppression
    scheduler — Periodic sync trigger
"""
