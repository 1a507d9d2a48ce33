"""Seance: read-only inspection of the graveyard record.

The record lock is held only long enough to snapshot the record, so
walking large buried trees to compute sizes never blocks concurrent
bury or exhume operations.
"""

import logging
import os

from rip.core.exhume import EntryPredicate
from rip.core.record import RecordStore
from rip.core.transfer import tree_size
from rip.models.entry import Entry, GraveListing

logger = logging.getLogger(__name__)


def seance(store: RecordStore, predicate: EntryPredicate | None = None) -> list[GraveListing]:
    """List buried items, newest first, with their current sizes.

    Entries whose graveyard item has vanished are pruned from the
    record instead of being listed. Staleness seen in the snapshot is
    only a hint: each candidate is checked again under the exclusive
    lock before its row is removed.

    Args:
        store: Record store of the graveyard.
        predicate: Optional filter over entries.

    Returns:
        Listings ordered by deletion time, most recent first.
    """
    snapshot = store.read_all()

    suspects = {entry for entry in snapshot if not os.path.lexists(entry.graveyard_path)}
    if suspects:
        pruned = prune(store, lambda entry: entry in suspects)
        logger.info("Pruned %d record entries whose graveyard item is gone", len(pruned))

    ordered = sorted(
        enumerate(snapshot),
        key=lambda pair: (pair[1].deletion_timestamp, pair[0]),
        reverse=True,
    )
    return [
        GraveListing(entry=entry, size_bytes=tree_size(entry.graveyard_path))
        for _, entry in ordered
        if entry not in suspects and (predicate is None or predicate(entry))
    ]


def prune(store: RecordStore, predicate: EntryPredicate | None = None) -> list[Entry]:
    """Remove entries whose graveyard item no longer exists.

    Args:
        store: Record store of the graveyard.
        predicate: Optional filter restricting which entries may be pruned.

    Returns:
        The pruned entries.
    """
    with store.open():
        stale = [
            entry
            for entry in store.read_all()
            if (predicate is None or predicate(entry))
            and not os.path.lexists(entry.graveyard_path)
        ]
        if stale:
            store.remove(stale)
    for entry in stale:
        logger.info(
            "Pruned %s (graveyard item %s is gone)", entry.original_path, entry.graveyard_path
        )
    return stale
