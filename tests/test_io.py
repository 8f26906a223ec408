"""Tests for saving and loading NDArrays."""

import io

import pytest
import torch

import ndlineage as nd
from ndlineage.utils import io as nd_io


class TestSaveLoad:
    def test_list_round_trip(self, tmp_path):
        fname = str(tmp_path / "arrays.nd")
        a = nd.array([[1.0, 2.0], [3.0, 4.0]])
        b = nd.arange(3, dtype=nd.DType.INT32)
        nd.save(fname, [a, b])

        loaded = nd.load_to_list(fname)
        assert len(loaded) == 2
        assert nd.array_equal(loaded[0], a)
        assert loaded[1].dtype == nd.DType.INT32
        assert loaded[1].tolist() == [0, 1, 2]

    def test_dict_round_trip(self, tmp_path):
        fname = str(tmp_path / "params.nd")
        nd.save(fname, {"weight": nd.ones((2, 2)), "bias": nd.zeros((2,))})

        loaded = nd.load_to_dict(fname)
        assert set(loaded) == {"weight", "bias"}
        assert loaded["bias"].tolist() == [0.0, 0.0]

    def test_single_array(self, tmp_path):
        fname = str(tmp_path / "one.nd")
        nd.save(fname, nd.full((3,), 4.0))
        names, arrays = nd.load(fname)
        assert names == []
        assert arrays[0].tolist() == [4.0, 4.0, 4.0]

    def test_loaded_arrays_have_fresh_handles_and_no_lineage(self, tmp_path):
        fname = str(tmp_path / "derived.nd")
        a = nd.ones((2,))
        derived = a + 1
        nd.save(fname, [derived])
        (loaded,) = nd.load_to_list(fname)
        assert loaded.handle != derived.handle
        assert loaded.dependencies == {}

    def test_creates_parent_directories(self, tmp_path):
        fname = tmp_path / "nested" / "dir" / "arrays.nd"
        nd.save(str(fname), [nd.ones((1,))])
        assert fname.exists()

    def test_file_uri(self, tmp_path):
        fname = tmp_path / "uri.nd"
        nd.save(fname.as_uri(), [nd.ones((2,))])
        (loaded,) = nd.load_to_list(fname.as_uri())
        assert loaded.tolist() == [1.0, 1.0]

    def test_load_to_dict_without_names(self, tmp_path):
        fname = str(tmp_path / "unnamed.nd")
        nd.save(fname, [nd.ones((2,))])
        with pytest.raises(nd.UsageError, match="no name"):
            nd.load_to_dict(fname)

    def test_save_rejects_non_arrays(self, tmp_path):
        with pytest.raises(nd.UsageError, match="expects NDArrays"):
            nd.save(str(tmp_path / "bad.nd"), [nd.ones((1,)), [1.0]])

    def test_save_disposed_array(self, tmp_path):
        a = nd.ones((1,))
        a.dispose()
        with pytest.raises(nd.DisposedArrayError):
            nd.save(str(tmp_path / "gone.nd"), [a])

    def test_name_count_mismatch_is_native_error(self, tmp_path):
        fname = tmp_path / "mismatch.nd"
        torch.save({"names": ["a", "b"], "arrays": [torch.ones(2)]}, str(fname))
        with pytest.raises(nd.NativeError, match="Mismatch"):
            nd.load(str(fname))

    def test_missing_file_is_native_error(self, tmp_path):
        with pytest.raises(nd.NativeError, match="Cannot open"):
            nd.load(str(tmp_path / "missing.nd"))

    def test_corrupt_file_is_native_error(self, tmp_path):
        fname = tmp_path / "corrupt.nd"
        fname.write_bytes(b"not an array file")
        with pytest.raises(nd.NativeError):
            nd.load(str(fname))


class TestFilesystems:
    def test_unknown_scheme(self):
        with pytest.raises(nd.NativeError, match="No filesystem registered"):
            nd.save("nosuchfs://bucket/arrays.nd", [nd.ones((1,))])

    def test_registered_scheme(self, monkeypatch):
        store = {}

        class _Buffer(io.BytesIO):
            def __init__(self, key):
                super().__init__(store.get(key, b""))
                self.key = key

            def close(self):
                store[self.key] = self.getvalue()
                super().close()

        def opener(fname, mode):
            return _Buffer(fname)

        monkeypatch.setattr(nd_io, "_FILESYSTEMS", {})
        nd.register_filesystem("mem", opener)
        nd.save("mem://arrays", {"x": nd.full((2,), 3.0)})
        assert "mem://arrays" in store

        loaded = nd.load_to_dict("mem://arrays")
        assert loaded["x"].tolist() == [3.0, 3.0]


class TestDeserialize:
    def test_round_trip_preserves_dtype(self):
        a = nd.array([1, 2, 3], dtype=nd.DType.INT64)
        b = nd.deserialize(a.serialize())
        assert b.dtype == nd.DType.INT64
        assert b.tolist() == [1, 2, 3]

    def test_garbage_bytes(self):
        with pytest.raises(nd.NativeError):
            nd.deserialize(b"garbage")
