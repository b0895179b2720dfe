"""Duplicate suppression for glucose sync.

Prevents writing a record to a store that already holds it, whether from an
earlier sync run (e.g. a re-run after a mid-batch failure) or because the
record originated in that store and is being round-tripped back.

Sync identity:
    - a vital-signs sample is identified by its ``origin_id``
    - a care-plan outcome is identified by ``str(outcome.uuid)``
    - a copied record carries the source identity in ``external_id``

A record is considered present in the destination when its own identity,
or the identity it was copied from, matches any identity (own or
``external_id``) of a destination record in the same window.
"""

from __future__ import annotations

import logging
from typing import Iterable

from glucosync.glucose.base import MetricSample, Outcome

logger = logging.getLogger("glucosync.sync.dedup")


def sample_keys(sample: MetricSample) -> set[str]:
    """Return every sync identity a sample carries."""
    keys = {sample.origin_id}
    if sample.external_id:
        keys.add(sample.external_id)
    return keys


def outcome_keys(outcome: Outcome) -> set[str]:
    """Return every sync identity an outcome carries."""
    keys = {str(outcome.uuid)}
    if outcome.external_id:
        keys.add(outcome.external_id)
    return keys


class SyncIdentityCache:
    """Identities already present in a destination store for one sync run.

    Usage::

        cache = SyncIdentityCache.from_outcomes(existing_outcomes)
        if cache.contains_any(sample_keys(sample)):
            logger.debug("Skipping duplicate: %s", sample.origin_id)
        else:
            cache.mark_seen(sample_keys(sample))
            # write the record
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[Outcome]) -> SyncIdentityCache:
        cache = cls()
        for outcome in outcomes:
            cache.mark_seen(outcome_keys(outcome))
        return cache

    @classmethod
    def from_samples(cls, samples: Iterable[MetricSample]) -> SyncIdentityCache:
        cache = cls()
        for sample in samples:
            cache.mark_seen(sample_keys(sample))
        return cache

    def contains_any(self, keys: Iterable[str]) -> bool:
        return any(k in self._seen for k in keys)

    def mark_seen(self, keys: Iterable[str]) -> None:
        self._seen.update(keys)

    def __len__(self) -> int:
        return len(self._seen)
