import numpy as np
import pytest

from fixedeye.geometry import Point, Pose, Quaternion
from fixedeye.pose_average import (
    MeasureType,
    WeightedPoseAverage,
    WeightType,
    pose_to_vector,
    vector_to_pose,
)


def _same_rotation(a: Quaternion, b: Quaternion, atol=1e-9) -> bool:
    va, vb = a.as_array(), b.as_array()
    return np.allclose(va, vb, atol=atol) or np.allclose(va, -vb, atol=atol)


SAMPLE_POSE = Pose(Point(0.5, -1.0, 2.0), Quaternion(0.3, -0.5, 0.7, 0.2).normalized())


def test_pose_vector_round_trip():
    vect = pose_to_vector(SAMPLE_POSE)
    assert vect.shape == (7,)
    assert vector_to_pose(vect) == SAMPLE_POSE


def test_pose_vector_layout_puts_w_before_xyz():
    pose = Pose(Point(1.0, 2.0, 3.0), Quaternion(4.0, 5.0, 6.0, 7.0))
    assert list(pose_to_vector(pose)) == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0]


def test_vector_to_pose_rejects_wrong_length():
    with pytest.raises(ValueError):
        vector_to_pose([0.0] * 6)


def test_first_measure_fixes_type():
    avg = WeightedPoseAverage()
    avg.add_point(Point(1.0, 0.0, 0.0))
    assert avg.measure_type is MeasureType.POINT
    with pytest.raises(ValueError):
        avg.add_quaternion(Quaternion())


@pytest.mark.parametrize(
    "measure_type, add",
    [
        (MeasureType.POSE_W_COVARIANCE, lambda a: a.add_pose(SAMPLE_POSE)),
        (MeasureType.POSE, lambda a: a.add_pose(SAMPLE_POSE, np.eye(7))),
        (MeasureType.POINT, lambda a: a.add_pose(SAMPLE_POSE)),
        (MeasureType.QUATERNION, lambda a: a.add_point(Point())),
    ],
)
def test_mismatched_measure_is_rejected(measure_type, add):
    avg = WeightedPoseAverage(measure_type)
    with pytest.raises(ValueError):
        add(avg)
    assert len(avg) == 0


def test_bad_covariance_shape_is_rejected():
    avg = WeightedPoseAverage()
    with pytest.raises(ValueError):
        avg.add_pose(SAMPLE_POSE, np.eye(6))


def test_len_counts_measures():
    avg = WeightedPoseAverage()
    for _ in range(3):
        avg.add_pose(SAMPLE_POSE)
    assert len(avg) == 3
    avg.reset()
    assert len(avg) == 0


def test_empty_average_raises():
    with pytest.raises(ValueError):
        WeightedPoseAverage().ave_and_cov_compute()


def test_identical_poses_average_to_that_pose():
    avg = WeightedPoseAverage()
    for _ in range(4):
        avg.add_pose(SAMPLE_POSE)
    mean, cov = avg.ave_and_cov_compute()
    assert np.allclose(mean.position.as_array(), SAMPLE_POSE.position.as_array())
    assert _same_rotation(mean.orientation, SAMPLE_POSE.orientation)
    assert np.allclose(cov[:3, :3], 0.0)
    assert np.allclose(cov[:3, 3:], 0.0)
    assert len(avg) == 0


def test_do_reset_false_keeps_measures():
    avg = WeightedPoseAverage()
    avg.add_pose(SAMPLE_POSE)
    avg.add_pose(SAMPLE_POSE)
    avg.ave_and_cov_compute(do_reset=False)
    assert len(avg) == 2


def test_ave_and_cov_forces_uniform_weights():
    avg = WeightedPoseAverage(weight_type=WeightType.TRACE)
    avg.add_pose(SAMPLE_POSE)
    avg.ave_and_cov_compute()
    assert avg.weight_type is WeightType.UNIFORM


def test_symmetric_points_average_to_origin():
    avg = WeightedPoseAverage()
    avg.add_point(Point(1.0, 2.0, -3.0))
    avg.add_point(Point(-1.0, -2.0, 3.0))
    mean, cov = avg.ave_and_cov_compute()
    assert np.allclose(mean.position.as_array(), np.zeros(3))
    assert np.allclose(cov, cov.T)
    assert np.all(np.linalg.eigvalsh(cov) >= -1e-12)


def test_point_measures_keep_identity_orientation():
    avg = WeightedPoseAverage()
    avg.add_point(Point(1.0, 0.0, 0.0))
    avg.add_point(Point(3.0, 0.0, 0.0))
    mean, _ = avg.ave_and_cov_compute()
    assert abs(mean.orientation.w) == pytest.approx(1.0)
    assert mean.orientation.x == pytest.approx(0.0, abs=1e-9)
    assert mean.orientation.y == pytest.approx(0.0, abs=1e-9)
    assert mean.orientation.z == pytest.approx(0.0, abs=1e-9)


def test_antipodal_quaternions_average_to_same_rotation():
    q = Quaternion(0.3, -0.5, 0.7, 0.2).normalized()
    neg = Quaternion(-q.w, -q.x, -q.y, -q.z)
    avg = WeightedPoseAverage()
    avg.add_quaternion(q)
    avg.add_quaternion(neg)
    mean, _ = avg.ave_and_cov_compute()
    assert _same_rotation(mean.orientation, q)
    assert np.allclose(mean.position.as_array(), np.zeros(3))


def test_mean_quaternion_is_unit():
    rng = np.random.default_rng(7)
    avg = WeightedPoseAverage()
    for _ in range(10):
        q = rng.normal(size=4)
        avg.add_quaternion(Quaternion(*q).normalized())
    mean, _ = avg.ave_and_cov_compute()
    assert mean.orientation.norm == pytest.approx(1.0)


def test_trace_weights_favour_larger_trace():
    avg = WeightedPoseAverage()
    avg.add_pose(Pose(Point(0.0, 0.0, 0.0)), np.eye(7))
    avg.add_pose(Pose(Point(4.0, 0.0, 0.0)), 3.0 * np.eye(7))
    mean, _ = avg.w_ave_compute(WeightType.TRACE)
    assert 2.0 < mean.position.x < 4.0
    assert avg.weight_type is WeightType.TRACE


def test_uniform_weighted_mean_lies_within_points():
    avg = WeightedPoseAverage()
    xs = [0.5, 1.5, 4.0]
    for x in xs:
        avg.add_pose(Pose(Point(x, 0.0, 0.0)), np.eye(7))
    mean, _ = avg.w_ave_compute(WeightType.UNIFORM)
    assert min(xs) < mean.position.x < max(xs)


def test_mahalanobis_identical_poses_have_zero_error():
    avg = WeightedPoseAverage(MeasureType.POSE_W_COVARIANCE, WeightType.MAHALANOBIS)
    for _ in range(3):
        avg.add_pose(SAMPLE_POSE, np.eye(7))
    mean, err = avg.w_ave_compute()
    assert np.allclose(mean.position.as_array(), SAMPLE_POSE.position.as_array())
    assert np.allclose(err.position.as_array(), np.zeros(3))
    assert _same_rotation(err.orientation, Quaternion())
    assert len(avg) == 0


def test_mahalanobis_singular_covariance_raises():
    avg = WeightedPoseAverage()
    avg.add_pose(SAMPLE_POSE, np.zeros((7, 7)))
    with pytest.raises(np.linalg.LinAlgError):
        avg.w_ave_compute(WeightType.MAHALANOBIS)


def test_position_error_sums_to_zero_for_uniform_weights():
    avg = WeightedPoseAverage()
    avg.add_point(Point(1.0, 0.0, 2.0))
    avg.add_point(Point(3.0, -4.0, 0.0))
    avg.add_point(Point(-1.0, 1.0, 1.0))
    _, err = avg.w_ave_compute(WeightType.UNIFORM)
    assert np.allclose(err.position.as_array(), np.zeros(3))