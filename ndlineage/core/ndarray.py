"""
NDArray wrapper over native handles

An NDArray pairs one engine handle with a writable flag and a lineage
registry. The registry maps the handle of every array that helped compute
this one to a weak reference to it, flattened across generations so that
one level of the registry is the whole lineage.

NOTE: the native memory behind a handle is not managed by the Python
collector in a timely way. Call ``dispose()`` (or use a ResourceScope, or
the array as a context manager) to release it deterministically; the
handle is only freed on garbage collection as a last resort.
"""

import logging
import numbers
import threading
import weakref
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import engine
from .context import Context, DType, SparseFormat
from .errors import DisposedArrayError, UsageError
from ..config import get_config
from ..utils import scope as _scope
from ..utils.printing import format_values

logger = logging.getLogger(__name__)


def add_dependency(producers: Sequence['NDArray'], results: Sequence['NDArray']):
    """
    Record that every array in ``results`` was computed from ``producers``

    Each result gets a weak reference to each producer keyed by the
    producer's handle, plus a copy of the producer's own registry.
    """
    for producer in producers:
        ref = weakref.ref(producer)
        with producer._lock:
            inherited = dict(producer.dependencies)
        for result in results:
            with result._lock:
                result.dependencies[producer._handle] = ref
                result.dependencies.update(inherited)


def wrap_handle(handle: int, stype: Optional[SparseFormat] = None, writable: bool = True) -> 'NDArray':
    """Wrap a fresh engine handle in the NDArray class matching its storage type"""
    if stype is None:
        stype = engine.get_storage_type(handle)
    if stype != SparseFormat.DEFAULT:
        return SparseNDArray(handle, writable=writable)
    return NDArray(handle, writable=writable)


def _as_output_list(out) -> Optional[List['NDArray']]:
    if out is None:
        return None
    if isinstance(out, NDArray):
        return [out]
    if isinstance(out, (list, tuple)) and out and all(isinstance(o, NDArray) for o in out):
        return list(out)
    raise UsageError(
        f"Unsupported out {type(out).__name__} type, should be NDArray or a sequence of NDArray"
    )


def invoke(op_name: str, *args, out=None, **kwargs):
    """
    Call a native operator

    Args:
        op_name: Operator name as registered in the engine
        *args: NDArray operands (or sequences of them) and scalar arguments.
            Scalars bind, in order, to the operator's declared arguments.
        out: NDArray or sequence of NDArrays receiving the results in place
        **kwargs: Named scalar arguments

    Returns:
        The result NDArray, or a tuple of them for multi-output operators.
        Results computed into fresh handles record every NDArray operand as
        a dependency; ``out`` holders are returned unchanged.
    """
    arguments = engine.get_op_arguments(op_name)

    nd_args: List[NDArray] = []
    pos_args = []
    for arg in args:
        if isinstance(arg, NDArray):
            nd_args.append(arg)
        elif isinstance(arg, (list, tuple)) and arg and all(isinstance(a, NDArray) for a in arg):
            nd_args.extend(arg)
        else:
            pos_args.append(arg)

    if len(pos_args) > len(arguments):
        raise UsageError(
            f"len(pos_args) = {len(pos_args)}, should be less or equal to "
            f"len(arguments) = {len(arguments)} for operator {op_name}"
        )
    params = {k: v for k, v in kwargs.items() if v is not None}
    params.update(zip(arguments, pos_args))
    params = {k: str(v) for k, v in params.items()}

    out_arrays = _as_output_list(out)
    out_handles = None
    if out_arrays is not None:
        for holder in out_arrays:
            if not holder.writable:
                raise UsageError("trying to write to a readonly NDArray")
        out_handles = [holder.handle for holder in out_arrays]

    handles, stypes = engine.imperative_invoke(
        op_name, [a.handle for a in nd_args], out_handles, params
    )

    if out_arrays is not None:
        results = out_arrays
    else:
        results = [wrap_handle(h, st) for h, st in zip(handles, stypes)]
        add_dependency(nd_args, results)

    return results[0] if len(results) == 1 else tuple(results)


def binary_op(lhs, rhs, array_op: str, scalar_op: str, rscalar_op: Optional[str] = None):
    """Dispatch a binary operator on (array, array), (array, scalar) or (scalar, array)"""
    if isinstance(lhs, NDArray):
        if isinstance(rhs, NDArray):
            return invoke(array_op, lhs, rhs)
        if isinstance(rhs, numbers.Number):
            return invoke(scalar_op, lhs, rhs)
    elif isinstance(lhs, numbers.Number) and isinstance(rhs, NDArray):
        return invoke(rscalar_op or scalar_op, rhs, lhs)
    raise UsageError(
        f"Unsupported operand types for {array_op}: "
        f"{type(lhs).__name__} and {type(rhs).__name__}"
    )


def waitall():
    """Block until every outstanding native operation has finished"""
    engine.wait_all()


class NDArray:
    """
    Array stored in native memory, identified by an engine handle

    Lifecycle is one way: live until ``dispose()``, then disposed. Any use
    of a disposed array raises DisposedArrayError.
    """

    def __init__(self, handle: int, writable: bool = True):
        self._handle = handle
        self.writable = writable
        # handles of the arrays that built this one -> weak refs to them
        self.dependencies: Dict[int, weakref.ref] = {}
        self._lock = threading.RLock()
        self._finalizer = weakref.finalize(self, engine.free, handle)
        self._finalizer.atexit = False
        _scope.track(self)

    # --- Lifecycle ---

    @property
    def handle(self) -> int:
        if not self._finalizer.alive:
            raise DisposedArrayError(f"NDArray (handle {self._handle}) has been disposed")
        return self._handle

    @property
    def is_disposed(self) -> bool:
        return not self._finalizer.alive

    def dispose(self):
        """
        Release the native memory

        The arrays this one depends on are NOT disposed. Calling dispose
        again is a no-op.
        """
        with self._lock:
            if self._finalizer.alive:
                self._finalizer()
                self.dependencies.clear()

    def dispose_deps(self) -> 'NDArray':
        """
        Dispose all arrays that helped construct this one

        e.g. ``(a * b + c).dispose_deps()`` disposes a, b, c and ``a * b``.
        """
        return self.dispose_deps_except()

    def dispose_deps_except(self, *arrays: 'NDArray') -> 'NDArray':
        """
        Dispose all arrays that helped construct this one, except ``arrays``
        and everything they depend on

        e.g. ``(a * b + c).dispose_deps_except(a, b)`` disposes c and ``a * b``.

        Returns:
            self, which is never disposed by this call
        """
        excepts = set()
        for arr in arrays:
            excepts.add(arr._handle)
            with arr._lock:
                excepts.update(arr.dependencies)

        with self._lock:
            doomed = [
                (key, ref) for key, ref in self.dependencies.items()
                if key not in excepts and key != self._handle
            ]
            for key, _ in doomed:
                del self.dependencies[key]

        released = 0
        for _, ref in doomed:
            dep = ref()
            if dep is not None and not dep.is_disposed:
                dep.dispose()
                released += 1
        logger.debug("Handle %d released %d of %d dependencies",
                     self._handle, released, len(doomed))
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    # --- Properties ---

    @property
    def shape(self) -> Tuple[int, ...]:
        return engine.get_shape(self.handle)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape, dtype=np.int64))

    @property
    def dtype(self) -> DType:
        return engine.get_dtype(self.handle)

    @property
    def context(self) -> Context:
        return engine.get_context(self.handle)

    @property
    def stype(self) -> SparseFormat:
        return engine.get_storage_type(self.handle)

    @property
    def is_sparse(self) -> bool:
        return self.stype != SparseFormat.DEFAULT

    @property
    def nbytes(self) -> int:
        return self.dtype.num_bytes * self.size

    def __len__(self):
        shape = self.shape
        if not shape:
            raise UsageError("len() of a 0-d NDArray")
        return shape[0]

    def wait_to_read(self):
        """Block until all pending writes to this array have finished"""
        engine.wait_to_read(self.handle)

    # --- Views ---

    def _view(self, handle: int) -> 'NDArray':
        view = NDArray(handle, writable=self.writable)
        add_dependency([self], [view])
        return view

    def slice(self, start: int, stop: Optional[int] = None) -> 'NDArray':
        """
        Return a view of rows [start, stop) along axis 0 sharing memory with
        this array. ``slice(i)`` is ``slice(i, i + 1)``.
        """
        if stop is None:
            stop = start + 1
        return self._view(engine.slice_axis0(self.handle, start, stop))

    def at(self, idx: int) -> 'NDArray':
        """View of row ``idx``; unlike ``slice(idx)`` the first axis is dropped"""
        return self._view(engine.at(self.handle, idx))

    def reshape(self, *shape) -> 'NDArray':
        """View with a new shape; accepts ``reshape(2, 3)`` or ``reshape((2, 3))``"""
        if len(shape) == 1 and isinstance(shape[0], (list, tuple)):
            shape = tuple(shape[0])
        return self._view(engine.reshape(self.handle, shape))

    def __getitem__(self, key):
        if isinstance(key, numbers.Integral):
            return self.at(int(key))
        if isinstance(key, slice):
            if key.step not in (None, 1):
                raise UsageError("NDArray only supports continuous slicing on axis 0")
            shape = self.shape
            if not shape:
                raise UsageError("Cannot slice a 0-d NDArray")
            start, stop, _ = key.indices(shape[0])
            return self.slice(start, max(start, stop))
        raise UsageError(f"Unsupported index type: {type(key).__name__}")

    @property
    def T(self) -> 'NDArray':
        if self.ndim != 2:
            raise UsageError("Only 2D matrix is allowed to be transposed")
        return invoke('transpose', self)

    # --- Assignment and copies ---

    def set(self, value) -> 'NDArray':
        """Overwrite the contents with a scalar, another NDArray or host data"""
        if not self.writable:
            raise UsageError("trying to assign to a readonly NDArray")
        if isinstance(value, NDArray):
            value.copy_to(self)
        elif isinstance(value, numbers.Number):
            invoke('_set_value', value, out=self)
        else:
            self._sync_copy_from(value)
        return self

    def _sync_copy_from(self, source):
        try:
            raw = np.asarray(source)
        except (TypeError, ValueError) as exc:
            raise UsageError(f"Cannot assign {type(source).__name__} to an NDArray: {exc}") from exc
        # None, strings and ragged sequences do not convert to numbers
        if raw.dtype == object or raw.dtype.kind in 'USV':
            raise UsageError(
                f"Wrong type passed: {type(source).__name__} is not a regular numeric array"
            )
        host = raw.astype(self.dtype.numpy_dtype, copy=False)
        if host.size != self.size:
            raise UsageError(
                f"array size ({host.size}) do not match the size of NDArray ({self.size})"
            )
        engine.sync_copy_from_cpu(self.handle, host)

    def copy_to(self, other: Union['NDArray', Context]) -> 'NDArray':
        """
        Copy the contents into another array, or into a new array on a context

        Returns:
            The copy target
        """
        if isinstance(other, Context):
            target = NDArray(engine.create(self.shape, other, True, self.dtype))
            return self.copy_to(target)
        if not isinstance(other, NDArray):
            raise UsageError(f"copy_to expects an NDArray or Context, got {type(other).__name__}")
        if other.handle == self.handle:
            logger.warning("copy an array to itself, is it intended ?")
        else:
            invoke('_copyto', self, out=other)
        return other

    def copy(self) -> 'NDArray':
        return self.copy_to(self.context)

    def as_in_context(self, context: Context) -> 'NDArray':
        """Return self if already on ``context``, otherwise a copy there"""
        if self.context == context:
            return self
        return self.copy_to(context)

    def astype(self, dtype: DType) -> 'NDArray':
        target = NDArray(engine.create(self.shape, self.context, True, dtype))
        return self.copy_to(target)

    # --- Host access ---

    def asnumpy(self) -> np.ndarray:
        return engine.sync_copy_to_cpu(self.handle)

    def tolist(self):
        return self.asnumpy().tolist()

    def to_scalar(self):
        if self.shape != (1,):
            raise UsageError("The current array is not a scalar")
        return self.asnumpy()[0].item()

    def serialize(self) -> bytes:
        return engine.save_raw_bytes(self.handle)

    # --- Storage ---

    def to_sparse(self, stype: Union[SparseFormat, str, None] = None) -> 'SparseNDArray':
        """Convert to a sparse storage type (row_sparse by default)"""
        if stype is None:
            target = SparseFormat.ROW_SPARSE
        elif isinstance(stype, str):
            target = SparseFormat.from_name(stype)
        else:
            target = SparseFormat(stype)
        if target == SparseFormat.DEFAULT:
            raise UsageError("Require Sparse")
        if self.is_sparse and stype is None:
            return self
        return invoke('cast_storage', self, stype=str(target))

    # --- Arithmetic ---

    def __add__(self, other):
        return binary_op(self, other, '_plus', '_plus_scalar')

    def __radd__(self, other):
        return binary_op(other, self, '_plus', '_plus_scalar')

    def __sub__(self, other):
        return binary_op(self, other, '_minus', '_minus_scalar')

    def __rsub__(self, other):
        return binary_op(other, self, '_minus', '_minus_scalar', '_rminus_scalar')

    def __mul__(self, other):
        return binary_op(self, other, '_mul', '_mul_scalar')

    def __rmul__(self, other):
        return binary_op(other, self, '_mul', '_mul_scalar')

    def __truediv__(self, other):
        return binary_op(self, other, '_div', '_div_scalar')

    def __rtruediv__(self, other):
        return binary_op(other, self, '_div', '_div_scalar', '_rdiv_scalar')

    def __mod__(self, other):
        return binary_op(self, other, '_mod', '_mod_scalar')

    def __rmod__(self, other):
        return binary_op(other, self, '_mod', '_mod_scalar', '_rmod_scalar')

    def __pow__(self, other):
        return binary_op(self, other, '_power', '_power_scalar')

    def __rpow__(self, other):
        return binary_op(other, self, '_power', '_power_scalar', '_rpower_scalar')

    def __neg__(self):
        return invoke('_mul_scalar', self, -1.0)

    def _inplace(self, other, array_op: str, scalar_op: str, verb: str):
        if not self.writable:
            raise UsageError(f"trying to {verb} a readonly NDArray")
        if isinstance(other, NDArray):
            invoke(array_op, self, other, out=self)
        elif isinstance(other, numbers.Number):
            invoke(scalar_op, self, other, out=self)
        else:
            raise UsageError(f"Unsupported operand type: {type(other).__name__}")
        return self

    def __iadd__(self, other):
        return self._inplace(other, '_plus', '_plus_scalar', 'add to')

    def __isub__(self, other):
        return self._inplace(other, '_minus', '_minus_scalar', 'subtract from')

    def __imul__(self, other):
        return self._inplace(other, '_mul', '_mul_scalar', 'multiply to')

    def __itruediv__(self, other):
        return self._inplace(other, '_div', '_div_scalar', 'divide from')

    def __imod__(self, other):
        return self._inplace(other, '_mod', '_mod_scalar', 'take modulo from')

    def __ipow__(self, other):
        return self._inplace(other, '_power', '_power_scalar', 'raise the power of')

    # --- Comparison (elementwise, 0/1 results) ---

    def __gt__(self, other):
        return binary_op(self, other, 'broadcast_greater', '_greater_scalar')

    def __ge__(self, other):
        return binary_op(self, other, 'broadcast_greater_equal', '_greater_equal_scalar')

    def __lt__(self, other):
        return binary_op(self, other, 'broadcast_lesser', '_lesser_scalar')

    def __le__(self, other):
        return binary_op(self, other, 'broadcast_lesser_equal', '_lesser_equal_scalar')

    # identity-based __eq__/__hash__ are kept: arrays live in dicts and weak refs

    def __repr__(self):
        if self.is_disposed:
            return f"<{type(self).__name__} (disposed)>"
        config = get_config()
        body = format_values(self.asnumpy(), config.print_length, config.layer_length)
        return f"{body}\n<{type(self).__name__} {self.shape} {self.context} {self.dtype}>"


class SparseNDArray(NDArray):
    """NDArray whose engine storage is row_sparse or csr"""

    def to_dense(self) -> NDArray:
        return invoke('cast_storage', self, stype=str(SparseFormat.DEFAULT))

    def asscipy(self):
        """Host copy as a scipy.sparse CSR matrix (2-D arrays only)"""
        from ..utils.sparse import to_scipy

        return to_scipy(self.stype, engine.sparse_parts(self.handle), self.shape)


def array_equal(lhs: NDArray, rhs: NDArray) -> bool:
    """True when both arrays have the same shape and the same values"""
    if lhs.shape != rhs.shape:
        return False
    return bool(np.array_equal(lhs.asnumpy(), rhs.asnumpy()))
