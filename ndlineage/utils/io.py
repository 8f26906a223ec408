"""
Input/Output utilities for saving and loading NDArrays
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Sequence, Tuple, Union
from urllib.parse import urlparse

from ..core import engine
from ..core.errors import NativeError, UsageError
from ..core.ndarray import NDArray, wrap_handle

logger = logging.getLogger(__name__)

# scheme -> opener(fname, mode) returning a binary file object
_FILESYSTEMS: Dict[str, Callable] = {}


def register_filesystem(scheme: str, opener: Callable):
    """
    Make ``scheme://`` URIs usable with save/load

    Args:
        scheme: URI scheme, e.g. 's3' or 'hdfs'
        opener: Callable ``opener(fname, mode)`` returning a binary file
            object usable as a context manager
    """
    _FILESYSTEMS[scheme.lower()] = opener


def _open(fname: str, mode: str):
    parsed = urlparse(str(fname))
    scheme = parsed.scheme.lower()
    # a one-letter scheme is a Windows drive
    if scheme in ('', 'file') or len(scheme) == 1:
        path = Path(parsed.path if scheme == 'file' else str(fname))
        if 'w' in mode:
            path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, mode)
    opener = _FILESYSTEMS.get(scheme)
    if opener is None:
        raise NativeError(f"No filesystem registered for scheme '{scheme}' (fname={fname})")
    return opener(str(fname), mode)


def save(fname: str, data: Union[Mapping[str, NDArray], Sequence[NDArray]]):
    """
    Save a dict of str -> NDArray or a list of NDArrays to a binary file

    Args:
        fname: Local path, file:// URI, or a URI whose scheme was registered
            with :func:`register_filesystem`
        data: Arrays to save; dict keys become the stored names
    """
    if isinstance(data, NDArray):
        data = [data]
    if isinstance(data, Mapping):
        names = [str(k) for k in data.keys()]
        arrays = list(data.values())
    else:
        names = []
        arrays = list(data)
    for arr in arrays:
        if not isinstance(arr, NDArray):
            raise UsageError(f"save expects NDArrays, got {type(arr).__name__}")
    handles = [arr.handle for arr in arrays]

    with _open(fname, 'wb') as stream:
        engine.save(stream, handles, names)
    logger.info("Saved %d array(s) to %s", len(arrays), fname)


def load(fname: str) -> Tuple[List[str], List[NDArray]]:
    """
    Load arrays saved by :func:`save`

    Returns:
        (names, arrays); names is empty when the file was saved from a list
    """
    try:
        stream = _open(fname, 'rb')
    except OSError as exc:
        raise NativeError(f"Cannot open {fname}: {exc}") from exc
    with stream:
        names, handles = engine.load(stream)
    arrays = [wrap_handle(h) for h in handles]
    logger.info("Loaded %d array(s) from %s", len(arrays), fname)
    return names, arrays


def load_to_dict(fname: str) -> Dict[str, NDArray]:
    names, arrays = load(fname)
    if len(names) != len(arrays):
        for arr in arrays:
            arr.dispose()
        raise UsageError(f"Loaded NDArrays have no name: {fname}")
    return dict(zip(names, arrays))


def load_to_list(fname: str) -> List[NDArray]:
    return load(fname)[1]


def deserialize(data: bytes) -> NDArray:
    """Rebuild an array from the bytes produced by ``NDArray.serialize()``"""
    return wrap_handle(engine.load_from_raw_bytes(data))
