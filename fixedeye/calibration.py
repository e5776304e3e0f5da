"""Fixed-eye camera calibration by composing two measured transforms."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np

from fixedeye.geometry import (
    POSE_DIM,
    Point,
    Pose,
    Quaternion,
    covariance_from_flat,
    quaternion_from_matrix,
)
from fixedeye.pose_average import MeasureType, WeightedPoseAverage, WeightType

logger = logging.getLogger(__name__)

WORLD_FRAME = "world"
ARUCO_FRAME = "aruco_frame"


@dataclass(frozen=True)
class TranslationWithCovariance:
    """A translation vector together with its 3x3 covariance."""

    translation: np.ndarray
    covariance: np.ndarray

    def __post_init__(self) -> None:
        t = np.array(self.translation, dtype=float).ravel()
        c = np.array(self.covariance, dtype=float)
        if t.size != 3:
            raise ValueError(f"a translation has 3 values, got {t.size}")
        if c.shape != (3, 3):
            raise ValueError(f"translation covariance must be 3x3, got shape {c.shape}")
        object.__setattr__(self, "translation", t)
        object.__setattr__(self, "covariance", c)


@dataclass(frozen=True)
class RotationWithCovariance:
    """A rotation quaternion together with its 4x4 covariance."""

    rotation: Quaternion
    covariance: np.ndarray

    def __post_init__(self) -> None:
        c = np.array(self.covariance, dtype=float)
        if c.shape != (4, 4):
            raise ValueError(f"rotation covariance must be 4x4, got shape {c.shape}")
        object.__setattr__(self, "covariance", c)


def propagate_translation(
    t1: TranslationWithCovariance,
    t2: TranslationWithCovariance,
    r1: Quaternion,
    r2: Quaternion,
) -> TranslationWithCovariance:
    """Compose translations and their covariance to first order."""
    compose_r = r1.to_rotation_matrix() @ r2.inverse().to_rotation_matrix()
    translation = t1.translation - compose_r @ t2.translation
    covariance = t1.covariance + compose_r @ t2.covariance @ compose_r.T
    return TranslationWithCovariance(translation, covariance)


def propagate_rotation(
    r1: RotationWithCovariance, r2: RotationWithCovariance
) -> RotationWithCovariance:
    """Compose rotations and their covariance to first order."""
    inv = r2.rotation.inverse()
    q1 = r1.rotation
    compose_r = q1.to_rotation_matrix() @ inv.to_rotation_matrix()
    jr1 = np.array(
        [
            [inv.w, -inv.x, -inv.y, -inv.z],
            [inv.x, inv.w, -inv.x, -inv.y],
            [inv.y, -inv.z, inv.w, inv.x],
            [inv.z, inv.y, -inv.z, inv.w],
        ]
    )
    jr2 = np.array(
        [
            [q1.w, -q1.x, -q1.y, -q1.z],
            [q1.x, q1.w, -q1.z, q1.y],
            [q1.y, q1.z, q1.w, -q1.x],
            [q1.z, -q1.y, q1.x, q1.w],
        ]
    )
    covariance = jr1 @ r1.covariance @ jr1.T + jr2 @ r2.covariance @ jr2.T
    return RotationWithCovariance(quaternion_from_matrix(compose_r), covariance)


def split_response(
    pose: Pose, covariance: Iterable[float]
) -> tuple[TranslationWithCovariance, RotationWithCovariance]:
    """Split a pose and its flat row-major 7x7 covariance into parts."""
    full = covariance_from_flat(covariance)
    p = pose.position
    translation = TranslationWithCovariance([p.x, p.y, p.z], full[:3, :3])
    rotation = RotationWithCovariance(pose.orientation, full[3:, 3:])
    return translation, rotation


@dataclass
class CalibratorSettings:
    """Parameters of the calibrator."""

    init_position: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    init_orientation: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    automatic_calibration: bool = False
    calibration_step_cond: int = 20
    position_norm2_cond: float = 0.0
    orientation_norm2_cond: float = 0.0
    camera_frame: str = "camera_link"
    marker_frame: str = "marker_1"

    def validate(self) -> None:
        """Raise ValueError if the settings cannot drive a calibration."""
        if len(self.init_position) != 3 or len(self.init_orientation) != 4:
            raise ValueError("init position or orientation has wrong dimension")
        if self.calibration_step_cond == 0 and (
            self.orientation_norm2_cond <= 0.0 or self.position_norm2_cond <= 0.0
        ):
            raise ValueError("error conditions must be strictly greater than zero")


class FixedEyeCalibrator:
    """Combines a world->marker and a camera->marker measure into an estimate."""

    def __init__(self, settings: Optional[CalibratorSettings] = None) -> None:
        self.settings = settings if settings is not None else CalibratorSettings()
        self.settings.validate()
        self.actual_estimation = np.array(
            [*self.settings.init_position, *self.settings.init_orientation],
            dtype=float,
        )
        self.iteration_cond = self.settings.calibration_step_cond != 0
        self.average = WeightedPoseAverage(
            MeasureType.POSE_W_COVARIANCE, WeightType.MAHALANOBIS
        )
        self._lock = threading.Lock()
        self._first: Optional[tuple[TranslationWithCovariance, RotationWithCovariance]] = None
        self._second: Optional[tuple[TranslationWithCovariance, RotationWithCovariance]] = None

    @property
    def running(self) -> bool:
        """True while a resolved measure is waiting for its partner."""
        with self._lock:
            return self._first is not None or self._second is not None

    def start(self) -> tuple[tuple[str, str], ...]:
        """Begin a calibration step; return the (frame, child frame) lookups to make."""
        if self.running:
            raise RuntimeError("calibration is already running")
        if self.settings.automatic_calibration:
            return ()
        return (
            (WORLD_FRAME, ARUCO_FRAME),
            (self.settings.camera_frame, self.settings.marker_frame),
        )

    def resolve(self, first: bool, pose: Pose, covariance: Iterable[float]) -> None:
        """Store the answer to the first or the second lookup."""
        parts = split_response(pose, covariance)
        with self._lock:
            if first:
                self._first = parts
            else:
                self._second = parts
        logger.info("measure %d resolved", 1 if first else 2)

    def poll(self) -> Optional[tuple[Pose, Pose]]:
        """Fold both measures into the average once resolved.

        Returns the averaged pose and the mean error, or None while waiting.
        """
        with self._lock:
            if self._first is None or self._second is None:
                logger.info("waiting for both measures to resolve")
                return None
            (t1, r1), (t2, r2) = self._first, self._second
            self._first = None
            self._second = None

        tr = propagate_translation(t1, t2, r1.rotation, r2.rotation)
        rr = propagate_rotation(r1, r2)
        pose = Pose(Point(*(float(v) for v in tr.translation)), rr.rotation)
        cov = np.zeros((POSE_DIM, POSE_DIM))
        cov[:3, :3] = tr.covariance
        cov[3:, 3:] = rr.covariance
        self.average.add_pose(pose, cov)
        mean, err = self.average.w_ave_compute(WeightType.MAHALANOBIS, do_reset=False)
        logger.info("estimated pose %s", mean)
        return mean, err