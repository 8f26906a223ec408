"""
Device contexts, element types and storage formats

These are plain value types passed across the native boundary.
"""

import re
from enum import Enum, IntEnum

import numpy as np
import torch

from .errors import UsageError


class Context:
    """
    Device descriptor: a device type ('cpu' or 'gpu') and a device ordinal.

    Contexts are immutable values; every allocating call accepts one
    explicitly and falls back to the configured default when given None.
    """

    devtype2str = {1: 'cpu', 2: 'gpu'}
    devstr2type = {'cpu': 1, 'gpu': 2}

    _PATTERN = re.compile(r"^\s*(cpu|gpu)\s*\(\s*(\d+)\s*\)\s*$")

    def __init__(self, device_type: str = 'cpu', device_id: int = 0):
        if device_type not in self.devstr2type:
            raise UsageError(f"Unknown device type: {device_type}")
        if device_id < 0:
            raise UsageError(f"Device id must be non-negative, got {device_id}")
        self._device_type = device_type
        self._device_id = int(device_id)

    @property
    def device_type(self) -> str:
        return self._device_type

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def device_typeid(self) -> int:
        return self.devstr2type[self._device_type]

    @property
    def torch_device(self) -> torch.device:
        if self._device_type == 'cpu':
            return torch.device('cpu')
        return torch.device('cuda', self._device_id)

    @classmethod
    def from_string(cls, text: str) -> 'Context':
        """Parse the 'cpu(0)' form produced by str(ctx)"""
        match = cls._PATTERN.match(text)
        if match is None:
            raise UsageError(f"Cannot parse context: {text!r}")
        return cls(match.group(1), int(match.group(2)))

    @classmethod
    def from_torch(cls, device: torch.device) -> 'Context':
        if device.type == 'cpu':
            return cls('cpu', 0)
        return cls('gpu', device.index or 0)

    def __eq__(self, other):
        return (
            isinstance(other, Context)
            and self._device_type == other._device_type
            and self._device_id == other._device_id
        )

    def __hash__(self):
        return hash((self._device_type, self._device_id))

    def __str__(self):
        return f"{self._device_type}({self._device_id})"

    def __repr__(self):
        return f"Context({self})"


def cpu(device_id: int = 0) -> Context:
    return Context('cpu', device_id)


def gpu(device_id: int = 0) -> Context:
    return Context('gpu', device_id)


class DType(Enum):
    """Element types understood by the engine"""

    FLOAT32 = 0
    FLOAT64 = 1
    FLOAT16 = 2
    UINT8 = 3
    INT32 = 4
    INT8 = 5
    INT64 = 6

    @property
    def torch_dtype(self) -> torch.dtype:
        return _TORCH_DTYPES[self]

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.name.lower())

    @property
    def num_bytes(self) -> int:
        return self.numpy_dtype.itemsize

    @classmethod
    def from_name(cls, name: str) -> 'DType':
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise UsageError(f"Unsupported dtype: {name}") from None

    @classmethod
    def from_torch(cls, dtype: torch.dtype) -> 'DType':
        for member, torch_dtype in _TORCH_DTYPES.items():
            if torch_dtype == dtype:
                return member
        raise UsageError(f"Unsupported dtype: {dtype}")

    @classmethod
    def from_numpy(cls, dtype) -> 'DType':
        return cls.from_name(np.dtype(dtype).name)

    def __str__(self):
        return self.name.lower()


_TORCH_DTYPES = {
    DType.FLOAT32: torch.float32,
    DType.FLOAT64: torch.float64,
    DType.FLOAT16: torch.float16,
    DType.UINT8: torch.uint8,
    DType.INT32: torch.int32,
    DType.INT8: torch.int8,
    DType.INT64: torch.int64,
}


class SparseFormat(IntEnum):
    """Storage type tag reported by the engine for every array"""

    DEFAULT = 0
    ROW_SPARSE = 1
    CSR = 2

    @classmethod
    def from_name(cls, name: str) -> 'SparseFormat':
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise UsageError(f"Unknown storage type: {name}") from None

    def __str__(self):
        return self.name.lower()
