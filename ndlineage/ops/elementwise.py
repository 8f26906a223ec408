"""
Elementwise operators with scalar broadcasting

Each function accepts (array, array), (array, scalar) or (scalar, array)
and dispatches to the matching native operator. Comparison results hold
1 where the condition is true and 0 elsewhere.
"""

from ..core.ndarray import NDArray, binary_op


def power(lhs, rhs) -> NDArray:
    """lhs ** rhs elementwise"""
    return binary_op(lhs, rhs, '_power', '_power_scalar', '_rpower_scalar')


def maximum(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, '_maximum', '_maximum_scalar')


def minimum(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, '_minimum', '_minimum_scalar')


def equal(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, 'broadcast_equal', '_equal_scalar')


def not_equal(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, 'broadcast_not_equal', '_not_equal_scalar')


def greater(lhs, rhs) -> NDArray:
    """
    lhs > rhs elementwise

    With a scalar on the left the comparison is flipped: ``greater(s, a)``
    is ``a < s``.
    """
    return binary_op(lhs, rhs, 'broadcast_greater', '_greater_scalar', '_lesser_scalar')


def greater_equal(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, 'broadcast_greater_equal', '_greater_equal_scalar',
                     '_lesser_equal_scalar')


def lesser(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, 'broadcast_lesser', '_lesser_scalar', '_greater_scalar')


def lesser_equal(lhs, rhs) -> NDArray:
    return binary_op(lhs, rhs, 'broadcast_lesser_equal', '_lesser_equal_scalar',
                     '_greater_equal_scalar')
