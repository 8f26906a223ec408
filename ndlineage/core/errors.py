"""
Error kinds raised by the NDArray binding

Usage errors are caller bugs (bad arguments, use after dispose, writes to a
read-only array). Native errors come from the engine boundary and are passed
through without interpretation.
"""


class NDArrayError(Exception):
    """Base class for every error raised by ndlineage"""


class UsageError(NDArrayError, ValueError):
    """A caller violated a precondition of the binding"""


class DisposedArrayError(UsageError):
    """An NDArray was used after its native handle was released"""


class NativeError(NDArrayError, RuntimeError):
    """The native engine rejected a call (bad shape, unknown operator, device failure, ...)"""
