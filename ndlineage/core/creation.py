"""
Factory functions for NDArrays

Every allocating call takes an optional ``ctx``; None selects the
configured default context.
"""

import numbers
from typing import Optional, Sequence, Union

import numpy as np

from . import engine
from .context import Context, DType
from .errors import UsageError
from .ndarray import NDArray, invoke
from ..config import resolve_context

ShapeLike = Union[int, Sequence[int]]


def _as_shape(shape: ShapeLike) -> tuple:
    if isinstance(shape, numbers.Integral):
        return (int(shape),)
    return tuple(shape)


def empty(shape: ShapeLike, ctx: Optional[Context] = None, dtype: DType = DType.FLOAT32) -> NDArray:
    """
    Create an uninitialized array

    Args:
        shape: Array shape (non-negative dimensions)
        ctx: Device context, defaults to the configured default
        dtype: Element type
    """
    handle = engine.create(_as_shape(shape), resolve_context(ctx), False, dtype)
    return NDArray(handle)


def zeros(shape: ShapeLike, ctx: Optional[Context] = None, dtype: DType = DType.FLOAT32) -> NDArray:
    return full(shape, 0, ctx=ctx, dtype=dtype)


def ones(shape: ShapeLike, ctx: Optional[Context] = None, dtype: DType = DType.FLOAT32) -> NDArray:
    return full(shape, 1, ctx=ctx, dtype=dtype)


def full(shape: ShapeLike, value, ctx: Optional[Context] = None, dtype: DType = DType.FLOAT32) -> NDArray:
    """Create an array filled with ``value``"""
    arr = empty(shape, ctx, dtype)
    try:
        arr.set(value)
    except Exception:
        arr.dispose()
        raise
    return arr


def array(source, ctx: Optional[Context] = None, dtype: Optional[DType] = None) -> NDArray:
    """
    Create an array holding a copy of ``source``

    Args:
        source: numpy array, NDArray or (nested) sequence of numbers
        ctx: Device context
        dtype: Element type; defaults to the numpy array's own type when it
            is supported, float32 otherwise
    """
    if isinstance(source, NDArray):
        source = source.asnumpy()
    try:
        host = np.asarray(source)
    except ValueError as exc:
        raise UsageError(f"Cannot build an NDArray from {type(source).__name__}: {exc}") from exc
    if host.dtype == object:
        raise UsageError(f"Wrong type passed: {type(source).__name__} is not a regular numeric array")

    if dtype is None:
        dtype = DType.FLOAT32
        if isinstance(source, np.ndarray):
            try:
                dtype = DType.from_numpy(host.dtype)
            except UsageError:
                pass

    arr = empty(host.shape, ctx, dtype)
    try:
        arr.set(host)
    except Exception:
        arr.dispose()
        raise
    return arr


def arange(
    start: float,
    stop: Optional[float] = None,
    step: float = 1.0,
    repeat: int = 1,
    ctx: Optional[Context] = None,
    dtype: DType = DType.FLOAT32,
) -> NDArray:
    """
    Evenly spaced values in the half-open interval [start, stop)

    With a single argument the interval is [0, start).
    ``repeat`` repeats every element that many times.
    """
    return invoke(
        '_arange',
        start=start, stop=stop, step=step, repeat=repeat, infer_range=False,
        ctx=resolve_context(ctx), dtype=dtype,
    )


def concatenate(arrays: Sequence[NDArray], axis: int = 0, always_copy: bool = True) -> NDArray:
    """
    Concatenate arrays along ``axis``

    Args:
        arrays: Arrays with identical shape except along ``axis`` and the
            same dtype
        axis: Axis to concatenate along; negative values count from the end
        always_copy: When False and only one array is given, return it as is

    Returns:
        A new array on the context of ``arrays[0]``
    """
    if len(arrays) == 0:
        raise UsageError("Provide at least one array")

    first = arrays[0]
    if not always_copy and len(arrays) == 1:
        return first

    shape = first.shape
    ndim = len(shape)
    if not -ndim <= axis < ndim:
        raise UsageError(f"axis {axis} is out of bounds for arrays of dimension {ndim}")
    axis %= ndim
    rest_before, rest_after = shape[:axis], shape[axis + 1:]
    dtype = first.dtype

    total = 0
    for arr in arrays:
        arr_shape = arr.shape
        if arr_shape[:axis] != rest_before or arr_shape[axis + 1:] != rest_after:
            raise UsageError(f"Mismatch between shape {shape} and {arr_shape}")
        if arr.dtype != dtype:
            raise UsageError(f"All arrays must have the same type (got {dtype} and {arr.dtype})")
        total += arr_shape[axis]

    ret_shape = rest_before + (total,) + rest_after
    ret = empty(ret_shape, ctx=first.context, dtype=dtype)

    idx = 0
    begin = [0] * len(ret_shape)
    end = list(ret_shape)
    for arr in arrays:
        length = arr.shape[axis]
        if axis == 0:
            with ret.slice(idx, idx + length) as region:
                region.set(arr)
        else:
            begin[axis] = idx
            end[axis] = idx + length
            invoke('_crop_assign', ret, arr, begin=tuple(begin), end=tuple(end), out=ret)
        idx += length
    return ret


def onehot_encode(indices: NDArray, out: NDArray) -> NDArray:
    """
    One-hot encode ``indices`` into ``out``

    Args:
        indices: 1-D array of class indices
        out: (len(indices), num_classes) result holder

    Returns:
        out
    """
    return invoke('_onehot_encode', indices, out, out=out)
