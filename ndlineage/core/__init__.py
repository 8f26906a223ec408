"""
Core ndlineage components.
"""

from .context import Context, DType, SparseFormat, cpu, gpu
from .errors import NDArrayError, UsageError, DisposedArrayError, NativeError
from .ndarray import NDArray, SparseNDArray, add_dependency, array_equal, invoke, waitall
from .creation import empty, zeros, ones, full, array, arange, concatenate, onehot_encode

__all__ = [
    "Context",
    "DType",
    "SparseFormat",
    "cpu",
    "gpu",
    "NDArrayError",
    "UsageError",
    "DisposedArrayError",
    "NativeError",
    "NDArray",
    "SparseNDArray",
    "add_dependency",
    "array_equal",
    "invoke",
    "waitall",
    "empty",
    "zeros",
    "ones",
    "full",
    "array",
    "arange",
    "concatenate",
    "onehot_encode",
]
