"""Weighted averaging of pose, point and quaternion measurements."""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

from fixedeye.geometry import POSE_DIM, Point, Pose, Quaternion


class MeasureType(enum.Enum):
    POINT = enum.auto()
    QUATERNION = enum.auto()
    POSE = enum.auto()
    POSE_W_COVARIANCE = enum.auto()
    UNDEFINED = enum.auto()


class WeightType(enum.Enum):
    UNIFORM = enum.auto()
    TRACE = enum.auto()
    MAHALANOBIS = enum.auto()


def pose_to_vector(pose: Pose) -> np.ndarray:
    """Return ``[x, y, z, qw, qx, qy, qz]`` for a pose."""
    p, q = pose.position, pose.orientation
    return np.array([p.x, p.y, p.z, q.w, q.x, q.y, q.z], dtype=float)


def vector_to_pose(vect) -> Pose:
    """Build a pose from ``[x, y, z, qw, qx, qy, qz]``."""
    v = np.asarray(vect, dtype=float).ravel()
    if v.size != POSE_DIM:
        raise ValueError(f"a pose vector has {POSE_DIM} values, got {v.size}")
    x, y, z, qw, qx, qy, qz = (float(c) for c in v)
    return Pose(Point(x, y, z), Quaternion(qw, qx, qy, qz))


@dataclass
class _Measure:
    vector: np.ndarray
    covariance: np.ndarray
    weight: float = 1.0


class WeightedPoseAverage:
    """Collects measurements of one kind and computes their weighted mean."""

    def __init__(
        self,
        measure_type: MeasureType = MeasureType.UNDEFINED,
        weight_type: WeightType = WeightType.UNIFORM,
    ) -> None:
        self.measure_type = measure_type
        self.weight_type = weight_type
        self._measures: list[_Measure] = []

    def __len__(self) -> int:
        return len(self._measures)

    def _claim(self, kind: MeasureType) -> None:
        if self.measure_type is MeasureType.UNDEFINED:
            self.measure_type = kind
        elif self.measure_type is not kind:
            raise ValueError(f"trying to add a measure that is not {kind.name}")

    def _append(self, pose: Pose, covariance: np.ndarray) -> None:
        self._measures.append(_Measure(pose_to_vector(pose), covariance))

    def add_pose(self, pose: Pose, covariance=None) -> None:
        """Add a pose; with a 7x7 covariance it counts as POSE_W_COVARIANCE."""
        if covariance is None:
            self._claim(MeasureType.POSE)
            self._append(pose, np.eye(POSE_DIM))
            return
        cov = np.array(covariance, dtype=float)
        if cov.shape != (POSE_DIM, POSE_DIM):
            raise ValueError(f"covariance must be 7x7, got shape {cov.shape}")
        self._claim(MeasureType.POSE_W_COVARIANCE)
        self._append(pose, cov)

    def add_quaternion(self, quat: Quaternion) -> None:
        """Add an orientation measure at the origin."""
        self._claim(MeasureType.QUATERNION)
        self._append(Pose(orientation=quat), np.eye(POSE_DIM))

    def add_point(self, point: Point) -> None:
        """Add a position measure with the identity orientation."""
        self._claim(MeasureType.POINT)
        self._append(Pose(position=point), np.eye(POSE_DIM))

    def reset(self) -> None:
        """Drop every stored measure."""
        self._measures.clear()

    def _normalize_weights(self) -> None:
        if not self._measures:
            raise ValueError("no measures to average")
        for m in self._measures:
            if self.weight_type is WeightType.TRACE:
                m.weight = float(np.diagonal(m.covariance).sum())
            elif self.weight_type is WeightType.MAHALANOBIS:
                m.weight = float(m.vector @ np.linalg.inv(m.covariance) @ m.vector)
        total = sum(m.weight for m in self._measures)
        if total == 0.0:
            raise ValueError("measure weights sum to zero")
        for m in self._measures:
            m.weight /= total

    def _average(self) -> Pose:
        position = np.zeros(3)
        scatter = np.zeros((4, 4))
        for m in self._measures:
            position += m.weight * m.vector[:3]
            q = m.vector[3:]
            scatter += m.weight * np.outer(q, q)
        _, vectors = np.linalg.eigh(scatter)
        w, x, y, z = vectors[:, -1]
        orientation = Quaternion(float(w), float(x), float(y), float(z)).normalized()
        return Pose(Point(*(float(c) for c in position)), orientation)

    def _quaternion_error(self, vector: np.ndarray, mean_inv: Quaternion) -> np.ndarray:
        return (Quaternion(*(float(c) for c in vector[3:])) * mean_inv).as_array()

    def _covariance(self, mean: Pose) -> np.ndarray:
        mean_vec = pose_to_vector(mean)
        mean_inv = mean.orientation.inverse()
        pos_cov = np.zeros((3, 3))
        quat_cov = np.zeros((4, 4))
        for m in self._measures:
            v_err = m.vector[:3] - mean_vec[:3]
            pos_cov += m.weight * np.outer(v_err, v_err)
            q_err = self._quaternion_error(m.vector, mean_inv)
            quat_cov += m.weight * np.outer(q_err, q_err)
        result = np.zeros((POSE_DIM, POSE_DIM))
        result[:3, :3] = pos_cov
        result[3:, 3:] = quat_cov
        return result

    def _error(self, mean: Pose) -> Pose:
        mean_vec = pose_to_vector(mean)
        mean_inv = mean.orientation.inverse()
        v_err = np.zeros(3)
        q_err = np.zeros(4)
        for m in self._measures:
            v_err += m.vector[:3] - mean_vec[:3]
            q_err += self._quaternion_error(m.vector, mean_inv)
        count = len(self._measures)
        return vector_to_pose(np.concatenate([v_err / count, q_err / count]))

    def ave_and_cov_compute(self, do_reset: bool = True) -> tuple[Pose, np.ndarray]:
        """Return the uniformly weighted mean pose and its 7x7 covariance."""
        self.weight_type = WeightType.UNIFORM
        self._normalize_weights()
        mean = self._average()
        cov = self._covariance(mean)
        if do_reset:
            self.reset()
        return mean, cov

    def w_ave_compute(
        self,
        weight_type: WeightType = WeightType.MAHALANOBIS,
        do_reset: bool = True,
    ) -> tuple[Pose, Pose]:
        """Return the weighted mean pose and the mean error of the measures from it."""
        self.weight_type = weight_type
        self._normalize_weights()
        mean = self._average()
        err = self._error(mean)
        if do_reset:
            self.reset()
        return mean, err