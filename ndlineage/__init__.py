"""
ndlineage: NDArray binding over a handle-based tensor engine

Arrays live in native (torch) memory behind opaque handles. Each array
records which arrays it was computed from, so whole computation chains can
be released explicitly with ``dispose_deps()``.
"""

from .core.context import Context, DType, SparseFormat, cpu, gpu
from .core.errors import NDArrayError, UsageError, DisposedArrayError, NativeError
from .core.ndarray import NDArray, SparseNDArray, array_equal, invoke, waitall
from .core.creation import empty, zeros, ones, full, array, arange, concatenate, onehot_encode
from .ops.elementwise import (
    power, maximum, minimum, equal, not_equal,
    greater, greater_equal, lesser, lesser_equal,
)
from .utils.io import save, load, load_to_dict, load_to_list, deserialize, register_filesystem
from .utils.scope import ResourceScope
from .config import Config, get_config

__version__ = "0.1.0"
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
    "power",
    "maximum",
    "minimum",
    "equal",
    "not_equal",
    "greater",
    "greater_equal",
    "lesser",
    "lesser_equal",
    "save",
    "load",
    "load_to_dict",
    "load_to_list",
    "deserialize",
    "register_filesystem",
    "ResourceScope",
    "Config",
    "get_config",
]
