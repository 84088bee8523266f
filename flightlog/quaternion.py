"""Quaternion helpers. Quaternions are [w, x, y, z] as logged by PX4."""
import numpy as np
from scipy.spatial.transform import Rotation


def _as_2d(q):
    q = np.asarray(q, dtype=float)
    return q.reshape(1, 4) if q.ndim == 1 else q


def quat_to_euler(q):
    """Roll, pitch, yaw in radians, same formula as the PX4 firmware."""
    single = np.ndim(q) == 1
    q = _as_2d(q)
    q0, q1, q2, q3 = q[:, 0], q[:, 1], q[:, 2], q[:, 3]
    roll = np.arctan2(2.0 * (q0 * q1 + q2 * q3), 1.0 - 2.0 * (q1 * q1 + q2 * q2))
    pitch = np.arcsin(np.clip(2.0 * (q0 * q2 - q3 * q1), -1.0, 1.0))
    yaw = np.arctan2(2.0 * (q0 * q3 + q1 * q2), 1.0 - 2.0 * (q2 * q2 + q3 * q3))
    eul = np.column_stack([roll, pitch, yaw])
    return eul[0] if single else eul


def quat_conj(q):
    q = _as_2d(q).copy()
    q[:, 1:] *= -1.0
    return q


def quat_multiply(p, q):
    """Hamilton product p * q, row by row."""
    p, q = _as_2d(p), _as_2d(q)
    pw, px, py, pz = p.T
    qw, qx, qy, qz = q.T
    return np.column_stack([
        pw * qw - px * qx - py * qy - pz * qz,
        pw * qx + px * qw + py * qz - pz * qy,
        pw * qy - px * qz + py * qw + pz * qx,
        pw * qz + px * qy - py * qx + pz * qw,
    ])


def quat_normalize(q):
    q = _as_2d(q)
    with np.errstate(invalid='ignore', divide='ignore'):
        return q / np.linalg.norm(q, axis=1, keepdims=True)


def quat_distance(q1, q2):
    """Geodesic angle between two attitudes, in radians."""
    q1, q2 = quat_normalize(q1), quat_normalize(q2)
    dot = np.abs(np.sum(q1 * q2, axis=1))
    return 2.0 * np.arccos(np.clip(dot, 0.0, 1.0))


def quat_mean(q):
    """Average rotation of the finite rows of q, or NaNs if there are none."""
    q = _as_2d(q)
    q = q[np.all(np.isfinite(q), axis=1)]
    if len(q) == 0:
        return np.full(4, np.nan)
    # scipy wants scalar-last
    mean = Rotation.from_quat(q[:, [1, 2, 3, 0]]).mean().as_quat()
    return mean[[3, 0, 1, 2]]


def slerp(q0, q1, ratio):
    """Spherical linear interpolation from q0 towards q1 along the shortest arc."""
    q0, q1 = quat_normalize(q0), quat_normalize(q1)
    ratio = np.asarray(ratio, dtype=float).reshape(-1, 1)

    dot = np.sum(q0 * q1, axis=1, keepdims=True)
    q1 = np.where(dot < 0.0, -q1, q1)
    dot = np.clip(np.abs(dot), 0.0, 1.0)

    theta = np.arccos(dot)
    sin_theta = np.sin(theta)
    near = sin_theta < 1e-9
    with np.errstate(invalid='ignore', divide='ignore'):
        w0 = np.where(near, 1.0 - ratio, np.sin((1.0 - ratio) * theta) / sin_theta)
        w1 = np.where(near, ratio, np.sin(ratio * theta) / sin_theta)
    return quat_normalize(w0 * q0 + w1 * q1)


def resample_quaternion(t, q, t_new):
    """Slerp q, sampled at increasing times t, onto t_new.

    Each output sample is interpolated between the last original sample at or
    before it and the one after, using the fraction of elapsed time between
    the two. Times outside [t[0], t[-1]] hold the end values.
    """
    t = np.asarray(t, dtype=float)
    t_new = np.asarray(t_new, dtype=float)
    q = _as_2d(q)
    if len(t) == 0:
        return np.full((len(t_new), 4), np.nan)
    if len(t) == 1:
        return np.repeat(q, len(t_new), axis=0)

    idx = np.searchsorted(t, t_new, side='right') - 1
    idx = np.clip(idx, 0, len(t) - 2)
    ratio = (t_new - t[idx]) / (t[idx + 1] - t[idx])
    ratio = np.clip(ratio, 0.0, 1.0)
    return slerp(q[idx], q[idx + 1], ratio)
