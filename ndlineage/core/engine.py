"""
Handle-based native engine

PyTorch does the numeric work; this module only exposes it through opaque
integer handles, the way a C library exposes ``NDArrayHandle``. Every
public function either succeeds or raises NativeError, and never issues a
handle on failure.
"""

import functools
import io
import itertools
import logging
import threading
from typing import BinaryIO, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import torch

from .context import Context, DType, SparseFormat
from .errors import NativeError, NDArrayError
from .operators import get_operator, list_operators

logger = logging.getLogger(__name__)


def _native(func):
    """Surface every engine-side failure as NativeError"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NDArrayError:
            raise
        except Exception as exc:
            raise NativeError(f"{func.__name__} failed: {exc}") from exc
    return wrapper


class _Deferred(NamedTuple):
    """Allocation request whose storage is materialized on first access"""
    shape: Tuple[int, ...]
    dtype: torch.dtype
    device: torch.device


class HandleArena:
    """
    Table of live native arrays keyed by handle

    Handles are issued from a monotonically increasing counter and are never
    reused, so a stale handle can only ever miss. The lock is reentrant:
    a collected wrapper may free its handle from inside another arena call.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[int, object] = {}
        self._ids = itertools.count(1)

    def add(self, entry) -> int:
        with self._lock:
            handle = next(self._ids)
            self._entries[handle] = entry
        return handle

    def get(self, handle: int) -> torch.Tensor:
        with self._lock:
            try:
                entry = self._entries[handle]
            except KeyError:
                raise NativeError(f"Invalid NDArray handle: {handle}") from None
            if isinstance(entry, _Deferred):
                entry = torch.empty(entry.shape, dtype=entry.dtype, device=entry.device)
                self._entries[handle] = entry
            return entry

    def replace(self, handle: int, tensor: torch.Tensor):
        with self._lock:
            if handle not in self._entries:
                raise NativeError(f"Invalid NDArray handle: {handle}")
            self._entries[handle] = tensor

    def remove(self, handle: int) -> bool:
        with self._lock:
            return self._entries.pop(handle, None) is not None

    def __contains__(self, handle):
        with self._lock:
            return handle in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)


_arena = HandleArena()


def live_handles() -> int:
    """Number of handles currently allocated"""
    return len(_arena)


def is_live(handle: int) -> bool:
    return handle in _arena


def _torch_device(ctx: Context) -> torch.device:
    device = ctx.torch_device
    if device.type == 'cuda':
        if not torch.cuda.is_available():
            raise NativeError(f"Context {ctx} is not available: CUDA support is missing")
        if device.index >= torch.cuda.device_count():
            raise NativeError(f"Context {ctx} is not available: only "
                              f"{torch.cuda.device_count()} GPU(s) present")
    return device


def _check_shape(shape: Sequence[int]) -> Tuple[int, ...]:
    dims = tuple(shape)
    for dim in dims:
        if isinstance(dim, bool) or not isinstance(dim, (int, np.integer)) or dim < 0:
            raise NativeError(
                f"Invalid shape {dims}: dimensions must be non-negative integers"
            )
    return tuple(int(dim) for dim in dims)


def _storage_type(tensor: torch.Tensor) -> SparseFormat:
    if tensor.layout == torch.strided:
        return SparseFormat.DEFAULT
    if tensor.layout == torch.sparse_coo:
        return SparseFormat.ROW_SPARSE
    if tensor.layout == torch.sparse_csr:
        return SparseFormat.CSR
    raise NativeError(f"Unsupported storage layout: {tensor.layout}")


# --- Allocation ---

@_native
def create(shape: Sequence[int], ctx: Context, delay_alloc: bool, dtype: DType) -> int:
    """Allocate an uninitialized dense array and return its handle"""
    dims = _check_shape(shape)
    if not isinstance(dtype, DType):
        raise NativeError(f"Unsupported dtype: {dtype!r}")
    device = _torch_device(ctx)
    if delay_alloc:
        entry = _Deferred(dims, dtype.torch_dtype, device)
    else:
        entry = torch.empty(dims, dtype=dtype.torch_dtype, device=device)
    handle = _arena.add(entry)
    logger.debug("Created handle %d shape=%s ctx=%s dtype=%s delay_alloc=%s",
                 handle, dims, ctx, dtype, delay_alloc)
    return handle


def free(handle: int) -> bool:
    released = _arena.remove(handle)
    if released:
        logger.debug("Freed handle %d", handle)
    return released


# --- Introspection ---

@_native
def get_shape(handle: int) -> Tuple[int, ...]:
    return tuple(_arena.get(handle).shape)


@_native
def get_dtype(handle: int) -> DType:
    return DType.from_torch(_arena.get(handle).dtype)


@_native
def get_context(handle: int) -> Context:
    return Context.from_torch(_arena.get(handle).device)


@_native
def get_storage_type(handle: int) -> SparseFormat:
    return _storage_type(_arena.get(handle))


def list_all_op_names() -> List[str]:
    return list_operators()


def get_op_arguments(op_name: str) -> List[str]:
    """Names of the scalar arguments of an operator, in positional order"""
    return list(get_operator(op_name).arguments)


# --- Views ---

def _dense_source(handle: int, what: str) -> torch.Tensor:
    tensor = _arena.get(handle)
    if tensor.layout != torch.strided:
        raise NativeError(f"{what} is only supported for dense arrays")
    if tensor.dim() == 0:
        raise NativeError(f"{what} is not supported for 0-d arrays")
    return tensor


@_native
def slice_axis0(handle: int, start: int, stop: int) -> int:
    tensor = _dense_source(handle, "Slicing")
    length = tensor.shape[0]
    if not 0 <= start <= stop <= length:
        raise NativeError(f"Slice [{start}, {stop}) out of range for axis 0 of length {length}")
    return _arena.add(tensor[start:stop])


@_native
def at(handle: int, idx: int) -> int:
    tensor = _dense_source(handle, "Indexing")
    length = tensor.shape[0]
    if not 0 <= idx < length:
        raise NativeError(f"Index {idx} out of range for axis 0 of length {length}")
    return _arena.add(tensor[idx])


@_native
def reshape(handle: int, dims: Sequence[int]) -> int:
    tensor = _dense_source(handle, "Reshaping")
    return _arena.add(tensor.view(tuple(int(d) for d in dims)))


# --- Host copies ---

@_native
def sync_copy_from_cpu(handle: int, source: np.ndarray):
    tensor = _arena.get(handle)
    host = torch.from_numpy(np.ascontiguousarray(source))
    tensor.copy_(host.reshape(tensor.shape))


@_native
def sync_copy_to_cpu(handle: int) -> np.ndarray:
    tensor = _arena.get(handle)
    if tensor.layout != torch.strided:
        tensor = tensor.to_dense()
    return tensor.detach().cpu().numpy().copy()


@_native
def sparse_parts(handle: int) -> Dict[str, np.ndarray]:
    """Raw components of a sparse array, copied to host memory"""
    tensor = _arena.get(handle)
    stype = _storage_type(tensor)
    if stype == SparseFormat.CSR:
        return {
            'data': tensor.values().cpu().numpy().copy(),
            'indices': tensor.col_indices().cpu().numpy().copy(),
            'indptr': tensor.crow_indices().cpu().numpy().copy(),
        }
    if stype == SparseFormat.ROW_SPARSE:
        tensor = tensor.coalesce()
        return {
            'rows': tensor.indices()[0].cpu().numpy().copy(),
            'values': tensor.values().cpu().numpy().copy(),
        }
    raise NativeError(f"Handle {handle} holds a dense array")


# --- Synchronization ---

@_native
def wait_to_read(handle: int):
    tensor = _arena.get(handle)
    if tensor.device.type == 'cuda':
        torch.cuda.synchronize(tensor.device)


@_native
def wait_all():
    if torch.cuda.is_available() and torch.cuda.is_initialized():
        torch.cuda.synchronize()


# --- Operator invocation ---

def _write_output(handle: int, result: torch.Tensor):
    target = _arena.get(handle)
    if target.layout != torch.strided:
        _arena.replace(handle, result.to(device=target.device))
    elif result.layout != torch.strided:
        target.copy_(result.to_dense())
    else:
        target.copy_(result)


@_native
def imperative_invoke(
    op_name: str,
    inputs: Sequence[int],
    outputs: Optional[Sequence[int]],
    params: Mapping[str, str],
) -> Tuple[List[int], List[SparseFormat]]:
    """
    Run an operator on input handles

    Args:
        op_name: Registered operator name
        inputs: Handles of the array operands
        outputs: Handles that receive the results in place, or None to
            allocate fresh result handles
        params: Scalar arguments, already converted to strings

    Returns:
        (result handles, storage type of each result)
    """
    op = get_operator(op_name)
    kwargs = op.parse(params)
    tensors = [_arena.get(h) for h in inputs]

    if op.writes_out:
        if not outputs:
            raise NativeError(f"Operator {op_name} requires an output array")
        op.fn(*tensors, out=_arena.get(outputs[0]), **kwargs)
        handles = list(outputs)
    else:
        results = op.fn(*tensors, **kwargs)
        if isinstance(results, torch.Tensor):
            results = (results,)
        if outputs:
            if len(outputs) != len(results):
                raise NativeError(
                    f"Operator {op_name} produces {len(results)} output(s), "
                    f"got {len(outputs)} output holder(s)"
                )
            for handle, result in zip(outputs, results):
                _write_output(handle, result)
            handles = list(outputs)
        else:
            stypes = [_storage_type(result) for result in results]
            return [_arena.add(result) for result in results], stypes

    return handles, [_storage_type(_arena.get(h)) for h in handles]


# --- Serialization ---

@_native
def save(stream: BinaryIO, handles: Sequence[int], names: Optional[Sequence[str]] = None):
    names = list(names or [])
    if names and len(names) != len(handles):
        raise NativeError(f"Got {len(names)} name(s) for {len(handles)} array(s)")
    arrays = [_arena.get(h).detach().cpu() for h in handles]
    torch.save({'names': names, 'arrays': arrays}, stream)


@_native
def load(stream: BinaryIO) -> Tuple[List[str], List[int]]:
    payload = torch.load(stream, weights_only=True)
    if not isinstance(payload, dict) or 'arrays' not in payload:
        raise NativeError("Not an NDArray file")
    names = list(payload.get('names') or [])
    arrays = list(payload['arrays'])
    if names and len(names) != len(arrays):
        raise NativeError(
            f"Mismatch between names ({len(names)}) and arrays ({len(arrays)}) in file"
        )
    return names, [_arena.add(tensor) for tensor in arrays]


@_native
def save_raw_bytes(handle: int) -> bytes:
    buffer = io.BytesIO()
    torch.save(_arena.get(handle).detach().cpu(), buffer)
    return buffer.getvalue()


@_native
def load_from_raw_bytes(data: bytes) -> int:
    tensor = torch.load(io.BytesIO(data), weights_only=True)
    if not isinstance(tensor, torch.Tensor):
        raise NativeError("Raw bytes do not hold a single array")
    return _arena.add(tensor)
