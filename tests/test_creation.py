"""Tests for allocation and the factory functions."""

import gc

import numpy as np
import pytest

import ndlineage as nd
from ndlineage.core import engine


class TestAllocation:
    def test_empty_shape_dtype_context(self):
        arr = nd.empty((2, 3), dtype=nd.DType.FLOAT64)
        assert arr.shape == (2, 3)
        assert arr.dtype == nd.DType.FLOAT64
        assert arr.context == nd.cpu(0)
        assert arr.stype == nd.SparseFormat.DEFAULT
        assert arr.dependencies == {}

    def test_int_shape(self):
        assert nd.zeros(4).shape == (4,)

    def test_zero_sized_dimension(self):
        assert nd.empty((0, 3)).size == 0

    def test_negative_dimension_raises_without_leaking(self):
        gc.collect()
        before = engine.live_handles()
        with pytest.raises(nd.NativeError, match="non-negative"):
            nd.empty((2, -1))
        assert engine.live_handles() <= before

    def test_unsupported_dtype_raises(self):
        with pytest.raises(nd.NativeError, match="Unsupported dtype"):
            nd.empty((2,), dtype="float32")

    def test_unavailable_gpu_is_native_error(self, monkeypatch):
        monkeypatch.setattr(engine.torch.cuda, "is_available", lambda: False)
        with pytest.raises(nd.NativeError, match="not available"):
            nd.empty((2,), ctx=nd.gpu(0))

    def test_deferred_allocation_materializes_on_use(self):
        handle = engine.create((2, 2), nd.cpu(0), True, nd.DType.FLOAT32)
        arr = nd.NDArray(handle)
        arr.set(5.0)
        assert arr.tolist() == [[5.0, 5.0], [5.0, 5.0]]

    def test_full_with_non_numeric_value_is_usage_error(self):
        gc.collect()
        before = engine.live_handles()
        with pytest.raises(nd.UsageError):
            nd.full((2,), "x")
        gc.collect()
        assert engine.live_handles() <= before

    def test_arena_lock_is_reentrant(self):
        arena = engine.HandleArena()
        handle = arena.add(engine.torch.ones(1))
        with arena._lock:
            # a finalizer running inside an arena call frees another handle
            assert arena.remove(handle)
        assert handle not in arena

    def test_zeros_ones_full(self):
        assert nd.zeros((2,)).tolist() == [0.0, 0.0]
        assert nd.ones((2,), dtype=nd.DType.INT64).tolist() == [1, 1]
        assert nd.full((1, 2), 2.5).tolist() == [[2.5, 2.5]]


class TestArray:
    def test_nested_list(self):
        arr = nd.array([[1, 2], [3, 4]])
        assert arr.shape == (2, 2)
        assert arr.dtype == nd.DType.FLOAT32

    def test_numpy_dtype_is_kept(self):
        arr = nd.array(np.arange(3, dtype=np.int64))
        assert arr.dtype == nd.DType.INT64
        assert arr.tolist() == [0, 1, 2]

    def test_ragged_input_rejected(self):
        with pytest.raises(nd.UsageError):
            nd.array([[1.0, 2.0], [3.0]])

    def test_from_ndarray_copies(self):
        src = nd.ones((2,))
        copy = nd.array(src)
        copy += 1
        assert src.tolist() == [1.0, 1.0]


class TestArange:
    def test_single_argument(self):
        assert nd.arange(4).tolist() == [0.0, 1.0, 2.0, 3.0]

    def test_start_stop_step_repeat(self):
        arr = nd.arange(1, 4, step=1.0, repeat=2)
        assert arr.tolist() == [1.0, 1.0, 2.0, 2.0, 3.0, 3.0]

    def test_dtype(self):
        arr = nd.arange(0, 3, dtype=nd.DType.INT32)
        assert arr.dtype == nd.DType.INT32


class TestConcatenate:
    def test_axis0(self):
        a = nd.array([[1.0, 2.0]])
        b = nd.array([[3.0, 4.0], [5.0, 6.0]])
        out = nd.concatenate([a, b])
        assert out.tolist() == [[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]

    def test_axis1(self):
        a = nd.array([[1.0], [2.0]])
        b = nd.array([[3.0, 4.0], [5.0, 6.0]])
        out = nd.concatenate([a, b], axis=1)
        assert out.tolist() == [[1.0, 3.0, 4.0], [2.0, 5.0, 6.0]]

    def test_single_array_without_copy(self):
        a = nd.ones((2,))
        assert nd.concatenate([a], always_copy=False) is a

    def test_shape_mismatch(self):
        with pytest.raises(nd.UsageError, match="Mismatch between shape"):
            nd.concatenate([nd.ones((2, 2)), nd.ones((2, 3))])

    def test_dtype_mismatch(self):
        with pytest.raises(nd.UsageError, match="same type"):
            nd.concatenate([nd.ones((2,)), nd.ones((2,), dtype=nd.DType.FLOAT64)])

    def test_negative_axis(self):
        a = nd.array([[1.0], [2.0]])
        b = nd.array([[3.0], [4.0]])
        assert nd.concatenate([a, b], axis=-1).tolist() == [[1.0, 3.0], [2.0, 4.0]]

    def test_axis_out_of_range(self):
        with pytest.raises(nd.UsageError, match="out of bounds"):
            nd.concatenate([nd.ones((2, 2)), nd.ones((2, 2))], axis=2)

    def test_empty_input(self):
        with pytest.raises(nd.UsageError, match="at least one"):
            nd.concatenate([])


class TestOnehot:
    def test_onehot_encode(self):
        indices = nd.array([0, 2, 1])
        out = nd.zeros((3, 3))
        assert nd.onehot_encode(indices, out) is out
        assert out.tolist() == [[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0]]


class TestSync:
    def test_wait_calls_are_no_ops_on_cpu(self):
        arr = nd.ones((2,))
        arr.wait_to_read()
        nd.waitall()
