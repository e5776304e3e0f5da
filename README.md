# fixedeye

Tools for estimating the pose of a fixed camera relative to a world frame,
built on weighted pose averaging and first-order propagation of covariance.

## Modules

- `fixedeye.geometry`: immutable `Point`, `Quaternion` (stored as w, x, y, z;
  identity by default) and `Pose` values. `Quaternion` supports
  `normalized()`, `inverse()`, multiplication with `*` and
  `to_rotation_matrix()`. `quaternion_from_matrix` builds a quaternion from a
  3×3 rotation matrix. `pose_to_affine` and `affine_to_pose` convert between a
  pose and a 4×4 homogeneous matrix, and `relative_transform(p1, p2)` returns
  the pose of `p1 * p2⁻¹`. `covariance_from_flat` reads a 7×7 covariance from
  the first 49 values of a row-major list, and `covariance_to_flat` turns one
  back into 49 values.
- `fixedeye.pose_average`: `WeightedPoseAverage` collects measures of one kind
  (`MeasureType`: `POSE`, `POSE_W_COVARIANCE`, `POINT`, `QUATERNION`) through
  `add_pose`, `add_point` and `add_quaternion`. It computes a weighted mean
  position and a mean orientation taken from the dominant eigenvector of the
  weighted quaternion scatter matrix.
  - `ave_and_cov_compute(do_reset=True)` uses uniform weights and returns the
    mean pose and a 7×7 covariance (position block and quaternion-error block).
  - `w_ave_compute(weight_type=WeightType.MAHALANOBIS, do_reset=True)` returns
    the mean pose and the mean error of the measures from it. `WeightType` is
    `UNIFORM`, `TRACE` or `MAHALANOBIS`.
  - `pose_to_vector` and `vector_to_pose` convert between a pose and
    `[x, y, z, qw, qx, qy, qz]`.
- `fixedeye.calibration`: `propagate_translation` and `propagate_rotation`
  compose two transforms with their covariances to first order, working on
  `TranslationWithCovariance` and `RotationWithCovariance` values.
  `split_response` splits a pose and its flat 7×7 covariance into those two
  parts. `FixedEyeCalibrator`, configured by `CalibratorSettings` (checked by
  `validate()`), runs one calibration step at a time:
  `start()` returns the two `(frame, child frame)` lookups to make
  (`world`→`aruco_frame` and camera frame→marker frame; none when
  `automatic_calibration` is set) and raises `RuntimeError` while a step is
  still in progress; `resolve(first, pose, covariance)` stores each answer;
  `poll()` returns `None` until both are in, then folds the combined measure
  into a Mahalanobis-weighted average and returns the mean pose and error.
- `fixedeye.listener`: `TransformListener` takes a transform source, any object
  with `can_transform(frame_id, child_frame_id)` and
  `lookup(frame_id, child_frame_id)` returning a `TransformSample` (pose and
  nanosecond stamp). `listen(frame_id, child_frame_id, samples)` gathers that
  many fresh samples, skipping those whose stamp is not newer than the first,
  sleeping `listen_sleep_ms` between lookups, and returns a `ListenResult` with
  the mean pose and flat covariance. A source raising `TransformLookupError`
  gives an unsuccessful result. Samples accumulate across requests.
- `fixedeye.broadcast`: `ListenBroadcaster` holds the transform of a child
  frame in a parent frame. It must be loaded with `load_from_parameters`
  (a position `[x, y, z]` and an orientation `[w, x, y, z]`) before
  `update_pose` or `stamped(stamp=None)` may be called; `stamped` returns a
  `StampedTransform`, using the current time when no stamp is given.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from fixedeye.geometry import Point, Pose, Quaternion
from fixedeye.pose_average import MeasureType, WeightType, WeightedPoseAverage

average = WeightedPoseAverage(MeasureType.POSE, WeightType.UNIFORM)
average.add_pose(Pose(Point(1.0, 0.0, 0.0), Quaternion(1.0, 0.0, 0.0, 0.0)))
average.add_pose(Pose(Point(3.0, 0.0, 0.0), Quaternion(1.0, 0.0, 0.0, 0.0)))

mean, covariance = average.ave_and_cov_compute()
print(mean.position)      # Point(x=2.0, y=0.0, z=0.0)
print(covariance[0, 0])   # 1.0
```

Measures of different kinds cannot be mixed in one average: adding a point to
an average of poses raises `ValueError`.

## What it does not do

The package is a library of computations only. It has no command-line
program, does not connect to any message bus or transform tree, and does not
publish anything: the caller supplies the transform source that
`TransformListener` reads, passes lookup answers to `FixedEyeCalibrator`, and
sends the `StampedTransform` records from `ListenBroadcaster` wherever they
need to go. It does not plan or execute robot motion.