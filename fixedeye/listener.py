"""Sampling a frame transform repeatedly and summarising it as mean and covariance."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from fixedeye.geometry import Pose, covariance_to_flat
from fixedeye.pose_average import MeasureType, WeightedPoseAverage, WeightType

logger = logging.getLogger(__name__)


class TransformLookupError(Exception):
    """Raised by a transform source when a lookup cannot be answered."""


@dataclass(frozen=True)
class TransformSample:
    """One looked-up transform and the time stamp, in nanoseconds, it carries."""

    pose: Pose
    stamp: int


@dataclass(frozen=True)
class ListenResult:
    """Outcome of a listen request: mean pose and flat row-major 7x7 covariance."""

    success: bool
    message: str = ""
    pose: Pose = field(default_factory=Pose)
    covariance: list[float] = field(default_factory=list)


class TransformSource(Protocol):
    """Anything that can answer transform lookups between two frames."""

    def can_transform(self, frame_id: str, child_frame_id: str) -> bool: ...

    def lookup(self, frame_id: str, child_frame_id: str) -> TransformSample: ...


class TransformListener:
    """Collects fresh samples of a transform and averages them.

    The underlying average is kept between requests, so every request folds
    its samples into those gathered before.
    """

    def __init__(self, source: TransformSource, listen_sleep_ms: int = 40) -> None:
        if listen_sleep_ms < 0:
            raise ValueError("listen_sleep_ms must not be negative")
        self._source = source
        self._wait = listen_sleep_ms / 1000.0
        self._average = WeightedPoseAverage(MeasureType.POSE, WeightType.UNIFORM)

    def listen(self, frame_id: str, child_frame_id: str, samples: int) -> ListenResult:
        """Take ``samples`` fresh lookups of ``child_frame_id`` in ``frame_id``."""
        if samples < 0:
            raise ValueError("samples must not be negative")
        logger.info("listen request %s -> %s", frame_id, child_frame_id)
        if not self._source.can_transform(frame_id, child_frame_id):
            return ListenResult(
                False, f"cannot transform {child_frame_id} into {frame_id}"
            )

        first_stamp: int | None = None
        taken = 0
        while taken < samples:
            try:
                sample = self._source.lookup(frame_id, child_frame_id)
            except TransformLookupError as exc:
                logger.error("%s", exc)
                return ListenResult(False, f"Error in tf lookupTransform {exc}")
            if first_stamp is None or sample.stamp > first_stamp:
                if first_stamp is None:
                    first_stamp = sample.stamp
                self._average.add_pose(sample.pose)
                taken += 1
            else:
                logger.warning("transform has not been updated")
            time.sleep(self._wait)

        mean, cov = self._average.ave_and_cov_compute(do_reset=False)
        return ListenResult(True, "", mean, covariance_to_flat(cov))