"""SE(3) rigid body transforms in JAX.

Transforms are 4x4 homogeneous matrices. All functions are pure, JIT-able,
and operate on JAX arrays.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_origin(xyz: Array, rpy: Array) -> Array:
    """
    Build the transform of a URDF ``<origin xyz=... rpy=...>`` element.

    Args:
        xyz: (..., 3) translation
        rpy: (..., 3) fixed-axis roll, pitch, yaw

    Returns:
        (..., 4, 4) transformation matrix
    """
    xyz = jnp.asarray(xyz, dtype=jnp.float64)
    rpy = jnp.asarray(rpy, dtype=jnp.float64)
    return from_position_and_rotation(xyz, so3.from_rpy(rpy))


def from_axis_angle(axis: Array, angle: Array) -> Array:
    """
    Pure rotation transform about ``axis`` (unit vector) by ``angle``.

    A zero axis yields the identity, which is how fixed nodes are encoded.
    """
    R = so3.exp(axis * angle[..., None])
    return from_position_and_rotation(jnp.zeros(R.shape[:-2] + (3,), dtype=R.dtype), R)


def get_position(T: Array) -> Array:
    """
    Extract position from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3) position vector
    """
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """
    Extract rotation matrix from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3, 3) rotation matrix
    """
    return T[..., :3, :3]
