"""Host-side unit quaternion helpers.

Quaternions are stored as NumPy arrays in (w, x, y, z) order. They describe
the camera pose, the UV frame of spheres and the orientation of swept-surface
cross-sections. Everything here runs in Python before data is uploaded to
Taichi fields, so plain NumPy is used throughout.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

Quaternion = npt.NDArray[np.float64]

IDENTITY: tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)


def as_quaternion(q: Sequence[float] | npt.ArrayLike) -> Quaternion:
    """Convert a (w, x, y, z) sequence to a normalized quaternion array.

    Raises:
        ValueError: If the input does not have four components or has
            zero length.
    """
    arr = np.asarray(q, dtype=np.float64)
    if arr.shape != (4,):
        raise ValueError(f"Quaternion must have 4 components (w, x, y, z), got shape {arr.shape}")
    norm = np.linalg.norm(arr)
    if norm < 1e-12:
        raise ValueError("Quaternion must have non-zero length")
    return arr / norm


def from_axis_angle(angle: float, axis: Sequence[float]) -> Quaternion:
    """Build the rotation of ``angle`` radians about ``axis``.

    A zero axis yields the identity rotation.
    """
    axis_arr = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(axis_arr)
    if norm < 1e-12:
        return np.array(IDENTITY, dtype=np.float64)
    axis_arr = axis_arr / norm
    half = 0.5 * angle
    return np.concatenate(([np.cos(half)], np.sin(half) * axis_arr))


def multiply(a: Quaternion, b: Quaternion) -> Quaternion:
    """Hamilton product a * b."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ],
        dtype=np.float64,
    )


def conjugate(q: Quaternion) -> Quaternion:
    """Conjugate, equal to the inverse for unit quaternions."""
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def to_rotation_matrix(q: Quaternion) -> npt.NDArray[np.float64]:
    """Convert a unit quaternion to a 3x3 rotation matrix."""
    w, x, y, z = as_quaternion(q)
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def from_rotation_matrix(m: npt.ArrayLike) -> Quaternion:
    """Convert a 3x3 rotation matrix to a unit quaternion with w >= 0."""
    m = np.asarray(m, dtype=np.float64)
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        s = 2.0 * np.sqrt(trace + 1.0)
        q = [0.25 * s, (m[2, 1] - m[1, 2]) / s, (m[0, 2] - m[2, 0]) / s, (m[1, 0] - m[0, 1]) / s]
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        q = [(m[2, 1] - m[1, 2]) / s, 0.25 * s, (m[0, 1] + m[1, 0]) / s, (m[0, 2] + m[2, 0]) / s]
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        q = [(m[0, 2] - m[2, 0]) / s, (m[0, 1] + m[1, 0]) / s, 0.25 * s, (m[1, 2] + m[2, 1]) / s]
    else:
        s = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        q = [(m[1, 0] - m[0, 1]) / s, (m[0, 2] + m[2, 0]) / s, (m[1, 2] + m[2, 1]) / s, 0.25 * s]
    q = as_quaternion(q)
    return -q if q[0] < 0.0 else q


def rotate(q: Quaternion, v: Sequence[float] | npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Rotate a 3-vector by a unit quaternion."""
    return to_rotation_matrix(q) @ np.asarray(v, dtype=np.float64)


def slerp(a: Quaternion, b: Quaternion, t: float) -> Quaternion:
    """Spherical linear interpolation from ``a`` (t=0) to ``b`` (t=1).

    Takes the shorter arc. Nearly identical inputs fall back to normalized
    linear interpolation.
    """
    a = as_quaternion(a)
    b = as_quaternion(b)
    d = float(np.dot(a, b))
    if d < 0.0:
        b = -b
        d = -d
    if d > 1.0 - 1e-6:
        return as_quaternion((1.0 - t) * a + t * b)
    theta = np.arccos(min(d, 1.0))
    sin_theta = np.sin(theta)
    return (np.sin((1.0 - t) * theta) * a + np.sin(t * theta) * b) / sin_theta
