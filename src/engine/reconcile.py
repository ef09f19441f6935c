"""
Reconciler — Work out which upstream releases still need mirroring.

The downstream repository's newest release in a stream (the ledger
marker) is the last version known to be done. Everything newer than it in
the upstream list is the backlog, replayed oldest first.

Both inputs are newest first, as the feed returns them:

    upstream: [3.2.0, 3.1.1, 3.1.0, 3.0.0]   marker: 3.1.0
    backlog:  [3.1.1, 3.2.0]

If the marker is not in the upstream list at all, the whole list is
replayed (fail open). If the marker has no name, nothing is replayed and
a ReconciliationWarning is issued.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..errors import ReconciliationWarning
from ..models.release import Release, ReleaseInfo

logger = logging.getLogger(__name__)


@dataclass
class Backlog:
    """Releases to mirror for one branch, oldest first."""

    releases: List[ReleaseInfo] = field(default_factory=list)
    ledger_marker: Optional[str] = None
    warning: Optional[str] = None

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.releases]

    def __len__(self) -> int:
        return len(self.releases)

    def __iter__(self):
        return iter(self.releases)


def _oldest_first(releases: Sequence[Release]) -> List[ReleaseInfo]:
    return [r.to_info() for r in reversed(releases)]


def reconcile(latest_mirrored: Optional[Release], all_upstream: Sequence[Release]) -> Backlog:
    """
    Compute the backlog for one branch.

    Args:
        latest_mirrored: Newest downstream release in the stream, or None
        all_upstream: Upstream releases in the stream, newest first

    Returns:
        Backlog ordered oldest to newest
    """
    if latest_mirrored is None:
        logger.info(f"[reconcile] Nothing mirrored yet, replaying {len(all_upstream)} release(s)")
        return Backlog(releases=_oldest_first(all_upstream))

    marker = latest_mirrored.name
    if not marker:
        message = "Latest mirrored release has no name; cannot locate it upstream, skipping branch"
        warnings.warn(message, ReconciliationWarning, stacklevel=2)
        logger.warning(f"[reconcile] {message}")
        return Backlog(ledger_marker=marker, warning=message)

    needle = marker.lower()
    index = next(
        (i for i, r in enumerate(all_upstream) if r.name is not None and r.name.lower() == needle),
        None,
    )

    if index is None:
        logger.warning(
            f"[reconcile] Marker {marker} not found upstream, replaying {len(all_upstream)} release(s)"
        )
        return Backlog(releases=_oldest_first(all_upstream), ledger_marker=marker)

    backlog = Backlog(releases=_oldest_first(all_upstream[:index]), ledger_marker=marker)
    logger.info(f"[reconcile] Marker {marker}: {len(backlog)} release(s) behind")
    return backlog
