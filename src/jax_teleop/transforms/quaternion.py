"""Quaternion algebra in JAX.

Quaternions are (..., 4) arrays in (w, x, y, z) order. Every function that
produces an orientation returns a unit quaternion.
"""

import jax
import jax.numpy as jnp
from typing import Union

# Type aliases
Array = jax.Array
Scalar = Union[float, Array]


def normalize(quaternions: Array) -> Array:
    """Normalize quaternions to unit length."""
    return quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)


def multiply(q1: Array, q2: Array) -> Array:
    """Hamilton product ``q1 * q2`` (apply ``q2`` first, then ``q1``)."""
    w1, x1, y1, z1 = jnp.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(q2, -1, 0)

    return jnp.stack([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], axis=-1)


def conjugate(q: Array) -> Array:
    """Conjugate, which is the inverse for unit quaternions."""
    return q * jnp.array([1.0, -1.0, -1.0, -1.0], dtype=q.dtype)


def from_axis_angle(axis: Array, angle: Scalar) -> Array:
    """
    Quaternion rotating by ``angle`` radians about ``axis``.

    Args:
        axis: (..., 3) rotation axis, normalised internally
        angle: scalar or (...) angles

    Returns:
        (..., 4) unit quaternion
    """
    axis = axis / jnp.linalg.norm(axis, axis=-1, keepdims=True)
    half = 0.5 * jnp.asarray(angle, dtype=axis.dtype)[..., None]
    return jnp.concatenate([jnp.cos(half), jnp.sin(half) * axis], axis=-1)


def rotate(q: Array, v: Array) -> Array:
    """Rotate vector(s) ``v`` (..., 3) by quaternion(s) ``q``."""
    w = q[..., :1]
    u = q[..., 1:]
    t = 2.0 * jnp.cross(u, v)
    return v + w * t + jnp.cross(u, t)


def slerp(q0: Array, q1: Array, t: Scalar) -> Array:
    """
    Spherical linear interpolation from ``q0`` (t=0) to ``q1`` (t=1).

    Takes the short arc and falls back to normalised linear interpolation
    when the two orientations nearly coincide.
    """
    t = jnp.asarray(t, dtype=q0.dtype)[..., None]
    dot = jnp.sum(q0 * q1, axis=-1, keepdims=True)
    q1 = jnp.where(dot < 0.0, -q1, q1)
    dot = jnp.abs(dot)

    nearly_parallel = dot > 0.9995
    theta = jnp.arccos(jnp.clip(dot, -1.0, 1.0))
    sin_theta = jnp.where(nearly_parallel, 1.0, jnp.sin(theta))

    w0 = jnp.where(nearly_parallel, 1.0 - t, jnp.sin((1.0 - t) * theta) / sin_theta)
    w1 = jnp.where(nearly_parallel, t, jnp.sin(t * theta) / sin_theta)

    return normalize(w0 * q0 + w1 * q1)


def to_rotation_vector(q: Array) -> Array:
    """
    Quaternion logarithm as a rotation vector (axis * angle).

    The sign is chosen so that the scalar part is non-negative, giving the
    shortest rotation. Below a vector norm of 1e-9 the first-order
    approximation ``2 * v`` is used.

    Args:
        q: (..., 4) quaternion

    Returns:
        (..., 3) rotation vector
    """
    q = normalize(q)
    q = jnp.where(q[..., 0:1] < 0.0, -q, q)

    w = q[..., 0:1]
    v = q[..., 1:]
    vector_norm = jnp.linalg.norm(v, axis=-1, keepdims=True)

    small = vector_norm < 1e-9
    angle = 2.0 * jnp.arctan2(vector_norm, w)
    scale = jnp.where(small, 2.0, angle / jnp.where(small, 1.0, vector_norm))

    return v * scale


def orientation_error(current: Array, target: Array) -> Array:
    """
    Rotation vector of ``current^-1 * target``, expressed in the current frame.

    Zero when the orientations agree; its norm is the angle between them.
    """
    delta = normalize(multiply(conjugate(current), target))
    return to_rotation_vector(delta)
