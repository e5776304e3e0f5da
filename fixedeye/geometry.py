"""Pose primitives, quaternion algebra and rigid-transform helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

POSE_DIM = 7
_FLAT_COVARIANCE_SIZE = POSE_DIM * POSE_DIM


@dataclass(frozen=True)
class Point:
    """A position in 3D space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class Quaternion:
    """A quaternion stored as (w, x, y, z); the default is the identity rotation."""

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.w, self.x, self.y, self.z], dtype=float)

    @property
    def norm(self) -> float:
        return math.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2)

    def normalized(self) -> Quaternion:
        """Return the unit quaternion; a zero quaternion is returned unchanged."""
        n = self.norm
        if n <= 0.0:
            return self
        return Quaternion(self.w / n, self.x / n, self.y / n, self.z / n)

    def inverse(self) -> Quaternion:
        """Return the multiplicative inverse (zero for a zero quaternion)."""
        n2 = self.w**2 + self.x**2 + self.y**2 + self.z**2
        if n2 <= 0.0:
            return Quaternion(0.0, 0.0, 0.0, 0.0)
        return Quaternion(self.w / n2, -self.x / n2, -self.y / n2, -self.z / n2)

    def __mul__(self, other: object) -> Quaternion:
        if not isinstance(other, Quaternion):
            return NotImplemented
        a, b = self, other
        return Quaternion(
            a.w * b.w - a.x * b.x - a.y * b.y - a.z * b.z,
            a.w * b.x + a.x * b.w + a.y * b.z - a.z * b.y,
            a.w * b.y + a.y * b.w + a.z * b.x - a.x * b.z,
            a.w * b.z + a.z * b.w + a.x * b.y - a.y * b.x,
        )

    def to_rotation_matrix(self) -> np.ndarray:
        """Return the 3x3 rotation matrix; the quaternion is assumed to be unit."""
        tx, ty, tz = 2.0 * self.x, 2.0 * self.y, 2.0 * self.z
        twx, twy, twz = tx * self.w, ty * self.w, tz * self.w
        txx, txy, txz = tx * self.x, ty * self.x, tz * self.x
        tyy, tyz, tzz = ty * self.y, tz * self.y, tz * self.z
        return np.array(
            [
                [1.0 - (tyy + tzz), txy - twz, txz + twy],
                [txy + twz, 1.0 - (txx + tzz), tyz - twx],
                [txz - twy, tyz + twx, 1.0 - (txx + tyy)],
            ]
        )


@dataclass(frozen=True)
class Pose:
    """A position together with an orientation."""

    position: Point = field(default_factory=Point)
    orientation: Quaternion = field(default_factory=Quaternion)


def quaternion_from_matrix(matrix) -> Quaternion:
    """Build a quaternion from a 3x3 rotation matrix."""
    m = np.asarray(matrix, dtype=float)
    if m.shape != (3, 3):
        raise ValueError(f"expected a 3x3 matrix, got shape {m.shape}")
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return Quaternion(
            w,
            (m[2, 1] - m[1, 2]) * t,
            (m[0, 2] - m[2, 0]) * t,
            (m[1, 0] - m[0, 1]) * t,
        )
    i = 0
    if m[1, 1] > m[0, 0]:
        i = 1
    if m[2, 2] > m[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
    xyz = [0.0, 0.0, 0.0]
    xyz[i] = 0.5 * t
    t = 0.5 / t
    w = (m[k, j] - m[j, k]) * t
    xyz[j] = (m[j, i] + m[i, j]) * t
    xyz[k] = (m[k, i] + m[i, k]) * t
    return Quaternion(w, *xyz)


def _rotation_part(linear: np.ndarray) -> np.ndarray:
    """Extract the rotation from a linear map by polar decomposition."""
    u, _, vt = np.linalg.svd(linear)
    sign = 1.0 if np.linalg.det(u @ vt) >= 0.0 else -1.0
    return u @ np.diag([1.0, 1.0, sign]) @ vt


def pose_to_affine(pose: Pose) -> np.ndarray:
    """Return the 4x4 homogeneous transform of a pose."""
    matrix = np.eye(4)
    matrix[:3, :3] = pose.orientation.to_rotation_matrix()
    matrix[:3, 3] = pose.position.as_array()
    return matrix


def affine_to_pose(matrix) -> Pose:
    """Return the pose held by a 4x4 (or 3x4) homogeneous transform."""
    m = np.asarray(matrix, dtype=float)
    if m.shape not in ((4, 4), (3, 4)):
        raise ValueError(f"expected a 4x4 or 3x4 matrix, got shape {m.shape}")
    q = quaternion_from_matrix(_rotation_part(m[:3, :3]))
    x, y, z = m[:3, 3]
    return Pose(Point(float(x), float(y), float(z)), q)


def relative_transform(p1: Pose, p2: Pose) -> Pose:
    """Return the pose of ``p1 * p2^-1``."""
    composed = pose_to_affine(p1) @ np.linalg.inv(pose_to_affine(p2))
    return affine_to_pose(composed)


def covariance_from_flat(data: Iterable[float]) -> np.ndarray:
    """Read a 7x7 covariance from its first 49 values in row-major order."""
    values = np.asarray(list(data), dtype=float).ravel()
    if values.size < _FLAT_COVARIANCE_SIZE:
        raise ValueError(
            f"a pose covariance needs {_FLAT_COVARIANCE_SIZE} values, got {values.size}"
        )
    return values[:_FLAT_COVARIANCE_SIZE].reshape(POSE_DIM, POSE_DIM).copy()


def covariance_to_flat(cov) -> list[float]:
    """Flatten a 7x7 covariance into 49 values in row-major order."""
    matrix = np.asarray(cov, dtype=float)
    if matrix.shape != (POSE_DIM, POSE_DIM):
        raise ValueError(f"expected a 7x7 matrix, got shape {matrix.shape}")
    return [float(v) for v in matrix.reshape(-1)]