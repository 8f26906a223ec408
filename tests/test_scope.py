"""Tests for ResourceScope."""

import ndlineage as nd
from ndlineage.utils import current_scope


class TestResourceScope:
    def test_disposes_arrays_created_inside(self):
        with nd.ResourceScope() as scope:
            a = nd.ones((2,))
            b = a + 1
            assert len(scope) == 2
        assert a.is_disposed
        assert b.is_disposed

    def test_arrays_created_outside_are_untouched(self):
        outside = nd.ones((2,))
        with nd.ResourceScope():
            inside = outside * 2
        assert not outside.is_disposed
        assert inside.is_disposed

    def test_keep(self):
        with nd.ResourceScope() as scope:
            a = nd.ones((2,))
            b = scope.keep(a * 3)
        assert a.is_disposed
        assert not b.is_disposed
        assert b.tolist() == [3.0, 3.0]

    def test_kept_array_moves_to_parent(self):
        with nd.ResourceScope() as outer:
            with nd.ResourceScope() as inner:
                kept = inner.keep(nd.ones((2,)))
            assert not kept.is_disposed
            assert len(outer) == 1
        assert kept.is_disposed

    def test_disposes_on_exception(self):
        arr = None
        try:
            with nd.ResourceScope():
                arr = nd.ones((2,))
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert arr.is_disposed

    def test_already_disposed_arrays_are_fine(self):
        with nd.ResourceScope():
            a = nd.ones((2,))
            a.dispose()
        assert a.is_disposed

    def test_current_scope(self):
        assert current_scope() is None
        with nd.ResourceScope() as scope:
            assert current_scope() is scope
        assert current_scope() is None
