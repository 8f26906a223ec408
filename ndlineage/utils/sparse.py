"""
Sparse utilities: convert engine sparse components to scipy matrices.
"""

from typing import Dict, Tuple

import numpy as np
import scipy.sparse as sp

from ..core.context import SparseFormat
from ..core.errors import UsageError


def to_scipy(stype: SparseFormat, parts: Dict[str, np.ndarray], shape: Tuple[int, ...]) -> sp.csr_matrix:
    """
    Build a scipy CSR matrix from the raw components of a 2-D sparse array.

    Args:
        stype: Storage type reported by the engine
        parts: Components returned by ``engine.sparse_parts``
        shape: Array shape, must be 2-D
    """
    if len(shape) != 2:
        raise UsageError(f"Only 2-D sparse arrays convert to scipy, got shape {shape}")

    if stype == SparseFormat.CSR:
        return sp.csr_matrix((parts['data'], parts['indices'], parts['indptr']), shape=shape)

    if stype == SparseFormat.ROW_SPARSE:
        rows, values = parts['rows'], parts['values']
        num_cols = shape[1]
        row_idx = np.repeat(rows, num_cols)
        col_idx = np.tile(np.arange(num_cols), len(rows))
        matrix = sp.coo_matrix((values.reshape(-1), (row_idx, col_idx)), shape=shape).tocsr()
        matrix.eliminate_zeros()
        return matrix

    raise UsageError(f"Cannot convert storage type {stype} to a scipy sparse matrix")
