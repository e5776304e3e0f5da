"""Holding a frame transform and producing stamped copies of it for broadcast."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from fixedeye.geometry import Point, Pose, Quaternion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StampedTransform:
    """A transform between two frames at a time stamp in nanoseconds."""

    frame_id: str
    child_frame_id: str
    stamp: int
    transform: Pose


class ListenBroadcaster:
    """Keeps the current transform of ``child_frame_id`` in ``frame_id``.

    The transform must first be loaded from parameter values; after that it
    can be updated and stamped for broadcasting.
    """

    def __init__(self, frame_id: str = "world", child_frame_id: str = "camera_link") -> None:
        self.frame_id = frame_id
        self.child_frame_id = child_frame_id
        self.transform = Pose()
        self.loaded = False

    def load_from_parameters(self, values: Iterable[Sequence[float]]) -> None:
        """Load position ``[x, y, z]`` and orientation ``[w, x, y, z]``."""
        arrays = list(values)
        if len(arrays) != 2:
            raise ValueError("not all parameter values are returned")
        pos, ori = (list(a) for a in arrays)
        if len(pos) != 3:
            raise ValueError(f"position needs 3 values, got {len(pos)}")
        if len(ori) != 4:
            raise ValueError(f"orientation needs 4 values, got {len(ori)}")
        self.transform = Pose(
            Point(*(float(v) for v in pos)), Quaternion(*(float(v) for v in ori))
        )
        self.loaded = True
        logger.info("loaded transform %s", self.transform)

    def _require_loaded(self) -> None:
        if not self.loaded:
            raise RuntimeError("transform has not been loaded from parameters")

    def update_pose(self, pose: Pose) -> None:
        """Replace the held transform."""
        self._require_loaded()
        self.transform = pose

    def stamped(self, stamp: Optional[int] = None) -> StampedTransform:
        """Return the held transform stamped at ``stamp`` (now by default)."""
        self._require_loaded()
        if stamp is None:
            stamp = time.time_ns()
        return StampedTransform(self.frame_id, self.child_frame_id, stamp, self.transform)