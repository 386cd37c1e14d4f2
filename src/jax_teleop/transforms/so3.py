"""SO(3) rotation utilities in JAX.

Rotation matrices, axis-angle rotations about joint axes, URDF roll-pitch-yaw
angles and quaternion conversions. All functions are pure, JIT-able, and
operate on JAX arrays with arbitrary leading batch dimensions.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula. A joint rotating by ``q`` about the unit
    axis ``a`` is ``exp(a * q)``.

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    # Taylor expansion near zero keeps the fixed (zero-axis) nodes exact
    small_angle = angle < 1e-8
    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    safe_angle = jnp.where(small_angle, 1.0, angle)
    axis = jnp.where(small_angle, log_r, log_r / safe_angle)

    K = skew_symmetric(axis)

    # Rodrigues formula: R = I + sin(θ) * K + (1 - cos(θ)) * K²
    I = jnp.eye(3, dtype=log_r.dtype)
    I = jnp.broadcast_to(I, log_r.shape[:-1] + (3, 3))

    R = (I +
         sin_angle[..., None] * K +
         (1.0 - cos_angle)[..., None] * jnp.matmul(K, K))

    return R


def from_rpy(rpy: Array) -> Array:
    """
    Convert URDF roll-pitch-yaw angles to a rotation matrix.

    URDF angles are fixed-axis rotations applied roll, then pitch, then yaw,
    so ``R = Rz(yaw) @ Ry(pitch) @ Rx(roll)``.

    Args:
        rpy: (..., 3) array of [roll, pitch, yaw] angles in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    roll, pitch, yaw = jnp.moveaxis(rpy, -1, 0)

    cr, sr = jnp.cos(roll), jnp.sin(roll)
    cp, sp = jnp.cos(pitch), jnp.sin(pitch)
    cy, sy = jnp.cos(yaw), jnp.sin(yaw)

    return jnp.stack([
        jnp.stack([cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr], axis=-1),
        jnp.stack([sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr], axis=-1),
        jnp.stack([-sp, cp * sr, cp * cr], axis=-1)
    ], axis=-2)


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to unit quaternions (w, x, y, z).

    Shepperd's method: the largest component comes from the diagonal and the
    others from off-diagonal terms. The scalar part is always non-negative.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (w, x, y, z) format
    """
    m = matrix
    trace = m[..., 0, 0] + m[..., 1, 1] + m[..., 2, 2]

    # Row k is proportional to the quaternion, scaled by 4 * q_k
    candidates = jnp.stack([
        jnp.stack([1.0 + trace, m[..., 2, 1] - m[..., 1, 2],
                   m[..., 0, 2] - m[..., 2, 0], m[..., 1, 0] - m[..., 0, 1]], axis=-1),
        jnp.stack([m[..., 2, 1] - m[..., 1, 2], 1.0 + m[..., 0, 0] - m[..., 1, 1] - m[..., 2, 2],
                   m[..., 0, 1] + m[..., 1, 0], m[..., 0, 2] + m[..., 2, 0]], axis=-1),
        jnp.stack([m[..., 0, 2] - m[..., 2, 0], m[..., 0, 1] + m[..., 1, 0],
                   1.0 - m[..., 0, 0] + m[..., 1, 1] - m[..., 2, 2], m[..., 1, 2] + m[..., 2, 1]], axis=-1),
        jnp.stack([m[..., 1, 0] - m[..., 0, 1], m[..., 0, 2] + m[..., 2, 0],
                   m[..., 1, 2] + m[..., 2, 1], 1.0 - m[..., 0, 0] - m[..., 1, 1] + m[..., 2, 2]], axis=-1),
    ], axis=-2)

    largest = jnp.argmax(jnp.stack([trace, m[..., 0, 0], m[..., 1, 1], m[..., 2, 2]], axis=-1), axis=-1)
    selected = jax.nn.one_hot(largest, 4, dtype=m.dtype)
    quaternion = jnp.sum(selected[..., :, None] * candidates, axis=-2)

    quaternion = quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)
    return jnp.where(quaternion[..., 0:1] < 0, -quaternion, quaternion)
