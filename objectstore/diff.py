"""Compare two listings of the same backend."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Sequence

from objectstore.storage.base import Object


@dataclass
class ObjectSliceDiff:
    """Difference between two object listings."""

    change: bool = False
    removed: list[Object] = field(default_factory=list)
    added: list[Object] = field(default_factory=list)
    updated: list[Object] = field(default_factory=list)


def diff_objects(
    previous: Sequence[Object],
    current: Sequence[Object],
    timestamp_tolerance: timedelta = timedelta(0),
) -> ObjectSliceDiff:
    """Find removed, added and updated objects between two listings.

    An object counts as updated when its last_modified moved forward by
    more than `timestamp_tolerance`. Objects without timestamps are never
    reported as updated.
    """
    diff = ObjectSliceDiff()
    current_by_key = {obj.key: obj for obj in current}
    previous_keys = set()

    for old in previous:
        previous_keys.add(old.key)
        new = current_by_key.get(old.key)
        if new is None:
            diff.removed.append(old)
        elif (
            old.last_modified is not None
            and new.last_modified is not None
            and new.last_modified - old.last_modified > timestamp_tolerance
        ):
            diff.updated.append(new)

    for new in current:
        if new.key not in previous_keys:
            diff.added.append(new)

    diff.change = bool(diff.removed or diff.added or diff.updated)
    return diff
