"""
Operator table of the native engine

Every operator is a torch kernel plus the ordered list of its scalar
arguments. Arguments cross the boundary as strings and are parsed here,
the same way a C API receives ``keys``/``vals`` arrays.
"""

from typing import Callable, Dict, Mapping, NamedTuple, Optional, Tuple

import torch
import torch.nn.functional as F

from .context import Context, DType, SparseFormat
from .errors import NativeError


def _float(value: str) -> float:
    return float(value)


def _int(value: str) -> int:
    return int(value)


def _bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('true', '1'):
        return True
    if lowered in ('false', '0'):
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def _shape(value: str) -> Tuple[int, ...]:
    body = value.strip().strip('()[]')
    return tuple(int(part) for part in body.split(',') if part.strip())


def _str(value: str) -> str:
    return value


class Operator(NamedTuple):
    name: str
    fn: Callable
    arguments: Dict[str, Callable[[str], object]]
    writes_out: bool = False

    def parse(self, params: Mapping[str, str]) -> Dict[str, object]:
        kwargs = {}
        for key, value in params.items():
            parser = self.arguments.get(key)
            if parser is None:
                raise NativeError(f"Operator {self.name} has no argument '{key}'")
            try:
                kwargs[key] = parser(value)
            except ValueError as exc:
                raise NativeError(
                    f"Invalid value {value!r} for argument '{key}' of {self.name}: {exc}"
                ) from exc
        return kwargs


OPERATORS: Dict[str, Operator] = {}


def register(name: str, writes_out: bool = False, **arguments):
    """Add a kernel to the table; keyword order is the positional binding order"""
    def decorator(fn):
        OPERATORS[name] = Operator(name, fn, dict(arguments), writes_out)
        return fn
    return decorator


def list_operators():
    return sorted(OPERATORS)


def get_operator(name: str) -> Operator:
    try:
        return OPERATORS[name]
    except KeyError:
        raise NativeError(f"Unknown operator: {name}") from None


def _dense(t: torch.Tensor) -> torch.Tensor:
    # storage fallback: elementwise kernels only run on dense data
    return t if t.layout == torch.strided else t.to_dense()


# --- Elementwise arithmetic ---

_BINARY = {
    '_plus': torch.add,
    '_minus': torch.sub,
    '_mul': torch.mul,
    '_div': torch.div,
    '_mod': torch.remainder,
    '_power': torch.pow,
    '_maximum': torch.maximum,
    '_minimum': torch.minimum,
}

_SCALAR = {
    '_plus_scalar': lambda t, s: torch.add(t, s),
    '_minus_scalar': lambda t, s: torch.sub(t, s),
    '_rminus_scalar': lambda t, s: torch.sub(torch.full_like(t, s), t),
    '_mul_scalar': lambda t, s: torch.mul(t, s),
    '_div_scalar': lambda t, s: torch.div(t, s),
    '_rdiv_scalar': lambda t, s: torch.div(torch.full_like(t, s), t),
    '_mod_scalar': lambda t, s: torch.remainder(t, s),
    '_rmod_scalar': lambda t, s: torch.remainder(torch.full_like(t, s), t),
    '_power_scalar': lambda t, s: torch.pow(t, s),
    '_rpower_scalar': lambda t, s: torch.pow(s, t),
    '_maximum_scalar': lambda t, s: torch.clamp(t, min=s),
    '_minimum_scalar': lambda t, s: torch.clamp(t, max=s),
}

# comparisons return 0/1 in the dtype of the left operand
_COMPARE = {
    'broadcast_equal': torch.eq,
    'broadcast_not_equal': torch.ne,
    'broadcast_greater': torch.gt,
    'broadcast_greater_equal': torch.ge,
    'broadcast_lesser': torch.lt,
    'broadcast_lesser_equal': torch.le,
}

_COMPARE_SCALAR = {
    '_equal_scalar': torch.eq,
    '_not_equal_scalar': torch.ne,
    '_greater_scalar': torch.gt,
    '_greater_equal_scalar': torch.ge,
    '_lesser_scalar': torch.lt,
    '_lesser_equal_scalar': torch.le,
}


def _make_binary(fn):
    def kernel(lhs, rhs):
        lhs, rhs = _dense(lhs), _dense(rhs)
        return fn(lhs, rhs).to(lhs.dtype)
    return kernel


def _make_scalar(fn):
    def kernel(data, scalar):
        data = _dense(data)
        return fn(data, scalar).to(data.dtype)
    return kernel


for _name, _fn in _BINARY.items():
    register(_name)(_make_binary(_fn))
for _name, _fn in _COMPARE.items():
    register(_name)(_make_binary(_fn))
for _name, _fn in _SCALAR.items():
    register(_name, scalar=_float)(_make_scalar(_fn))
for _name, _fn in _COMPARE_SCALAR.items():
    register(_name, scalar=_float)(_make_scalar(_fn))


# --- Assignment and copies ---

@register('_set_value', writes_out=True, src=_float)
def _set_value(*, out, src):
    out.fill_(src)


@register('_copyto')
def _copyto(data):
    return data.clone()


@register('_crop_assign', begin=_shape, end=_shape)
def _crop_assign(lhs, rhs, begin, end):
    if len(begin) != len(end):
        raise ValueError(f"begin {begin} and end {end} must have the same length")
    result = _dense(lhs).clone()
    region = tuple(slice(b, e) for b, e in zip(begin, end))
    result[region] = _dense(rhs).to(result.dtype)
    return result


@register('_onehot_encode')
def _onehot_encode(indices, out):
    depth = out.shape[1]
    return F.one_hot(_dense(indices).long(), depth).to(out.dtype)


# --- Layout ---

@register('transpose', axes=_shape)
def _transpose(data, axes: Optional[Tuple[int, ...]] = None):
    data = _dense(data)
    if not axes:
        axes = tuple(reversed(range(data.dim())))
    return data.permute(axes).clone(memory_format=torch.contiguous_format)


@register('cast_storage', stype=_str)
def _cast_storage(data, stype):
    target = SparseFormat.from_name(stype)
    dense = _dense(data)
    if target == SparseFormat.DEFAULT:
        return dense.clone() if dense is data else dense
    if target == SparseFormat.ROW_SPARSE:
        return dense.to_sparse(1).coalesce()
    if dense.dim() != 2:
        raise ValueError(f"csr storage requires a 2-D array, got {dense.dim()}-D")
    return dense.to_sparse_csr()


# --- Creation ---

@register(
    '_arange',
    start=_float, stop=_float, step=_float, repeat=_int,
    infer_range=_bool, ctx=Context.from_string, dtype=DType.from_name,
)
def _arange(start, stop=None, step=1.0, repeat=1, infer_range=False, ctx=None, dtype=None):
    if stop is None:
        start, stop = 0.0, start
    values = torch.arange(start, stop, step, dtype=torch.float64)
    if repeat != 1:
        values = values.repeat_interleave(repeat)
    dtype = dtype or DType.FLOAT32
    device = ctx.torch_device if ctx is not None else torch.device('cpu')
    return values.to(dtype=dtype.torch_dtype, device=device)
