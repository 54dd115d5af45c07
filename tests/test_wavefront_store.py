import numpy as np
import pytest
from wfedit.core.wavefront import (
    DiagonalBuffer, WavefrontStore, AmortizedWavefrontStore, DenseWavefrontStore,
    AllocationError, CapacityError, OffsetOverflowError, NarrowOffsetWarning, PAGE_SIZE, aligned_zeros
)


class TestDiagonalBuffer:
    def test_signed_indexing(self):
        w = DiagonalBuffer.zeros(-2, 2)
        assert len(w) == 5
        assert w.base == 2
        w[-2] = 5
        w[2] = 7
        assert w[-2] == 5
        assert w[2] == 7
        assert w[0] == 0
        assert w.data[0] == 5

    def test_out_of_range(self):
        w = DiagonalBuffer.zeros(-1, 1)
        with pytest.raises(IndexError, match="outside"):
            w[2]
        with pytest.raises(IndexError, match="outside"):
            w[-2] = 1
        assert 2 not in w
        assert -1 in w

    def test_items_from_lowest_diagonal(self):
        w = DiagonalBuffer(np.array([3, 4, 5], dtype=np.int32), -1, 1)
        assert list(w.items()) == [(-1, 3), (0, 4), (1, 5)]

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="cannot hold"):
            DiagonalBuffer(np.zeros(2, dtype=np.int32), -1, 1)

    def test_empty_range(self):
        with pytest.raises(ValueError, match="Empty"):
            DiagonalBuffer.zeros(1, 0)


class TestRegistry:
    def test_names(self):
        assert set(WavefrontStore.names()) >= {'amortized', 'dense'}

    def test_create(self):
        assert isinstance(WavefrontStore.create('amortized', 4), AmortizedWavefrontStore)
        assert isinstance(WavefrontStore.create('dense', 4), DenseWavefrontStore)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown wavefront store"):
            WavefrontStore.create('sparse', 4)

    def test_unsigned_dtype(self):
        with pytest.raises(TypeError, match="signed"):
            WavefrontStore.create('amortized', 4, dtype=np.uint16)


@pytest.mark.parametrize('name', ['amortized', 'dense'])
class TestStoreContract:
    def test_allocate_get_set(self, name):
        store = WavefrontStore.create(name, 6)
        store.reset()
        w = store.allocate(1, -1, 1)
        w[-1] = 3
        store.set(1, 1, 4)
        assert store.get(1, -1) == 3
        assert store.get(1, 1) == 4
        assert store.bounds(1) == (-1, 1)

    def test_generation_zero_after_reset(self, name):
        store = WavefrontStore.create(name, 6)
        store.reset()
        store.set(0, 0, 9)
        store.reset()
        assert store.get(0, 0) == 0
        assert store.bounds(0) == (0, 0)

    def test_contains(self, name):
        store = WavefrontStore.create(name, 6)
        store.reset()
        store.allocate(1, -1, 1)
        assert store.contains(1, 1)
        assert not store.contains(1, 2)
        assert not store.contains(2, 0)

    def test_unallocated_generation(self, name):
        store = WavefrontStore.create(name, 6)
        store.reset()
        with pytest.raises(IndexError, match="not allocated"):
            store.get(3, 0)

    def test_generation_beyond_capacity(self, name):
        store = WavefrontStore.create(name, 2)
        store.reset()
        with pytest.raises(IndexError):
            store.allocate(3, -3, 3)

    def test_view(self, name):
        store = WavefrontStore.create(name, 6)
        store.reset()
        store.allocate(2, -2, 2)[-2] = 11
        buffer, base = store.view(2)
        assert buffer[base - 2] == 11

    def test_capacity(self, name):
        store = WavefrontStore.create(name, 6)
        assert store.capacity == 6
        store.check_capacity(3, 3)
        store.check_capacity(6, 0)
        with pytest.raises(CapacityError, match="needs distance 7"):
            store.check_capacity(4, 3)

    def test_close(self, name):
        store = WavefrontStore.create(name, 6)
        store.close()
        with pytest.raises(IndexError):
            store.allocate(0, 0, 0)


class TestAmortizedStore:
    def test_reset_discards_generations(self):
        store = AmortizedWavefrontStore(4)
        store.reset()
        store.allocate(1, -1, 1)
        store.allocate(2, -2, 2)
        assert store.allocated == 3
        store.reset()
        assert store.allocated == 1
        with pytest.raises(IndexError):
            store.get(1, 0)

    def test_one_buffer_per_generation(self):
        store = AmortizedWavefrontStore(4)
        store.reset()
        a = store.allocate(1, -1, 1)
        b = store.allocate(2, -2, 2)
        assert not np.shares_memory(a.data, b.data)
        assert store.nbytes == (1 + 3 + 5) * np.dtype(np.int32).itemsize


class TestDenseStore:
    def test_index_formula(self):
        assert DenseWavefrontStore.index(0, 0) == 0
        assert DenseWavefrontStore.index(1, -1) == 1
        assert DenseWavefrontStore.index(1, 1) == 3
        assert DenseWavefrontStore.index(3, -3) == 9

    def test_index_is_a_bijection(self):
        slots = [DenseWavefrontStore.index(d, k) for d in range(6) for k in range(-d, d + 1)]
        assert sorted(slots) == list(range(36))

    def test_index_bounds(self):
        with pytest.raises(IndexError, match="outside"):
            DenseWavefrontStore.index(2, 3)
        with pytest.raises(IndexError, match="outside"):
            DenseWavefrontStore.index(2, -3)

    def test_arena_holds_last_generation(self):
        store = DenseWavefrontStore(4)
        assert len(store.buffer) == 25
        w = store.allocate(4, -4, 4)
        w[4] = 8
        assert store.buffer[-1] == 8

    def test_accessor_is_a_view(self):
        store = DenseWavefrontStore(4)
        store.reset()
        store.allocate(2, -2, 2)[1] = 7
        assert store.buffer[DenseWavefrontStore.index(2, 1)] == 7

    def test_reset_only_clears_origin(self):
        store = DenseWavefrontStore(4)
        store.reset()
        store.set(0, 0, 5)
        store.allocate(1, -1, 1)[0] = 6
        store.reset()
        assert store.get(0, 0) == 0
        assert store.buffer[DenseWavefrontStore.index(1, 0)] == 6
        with pytest.raises(IndexError):
            store.get(1, 0)

    def test_allocation_failure(self):
        with pytest.raises(AllocationError):
            DenseWavefrontStore(10 ** 9)

    def test_allocation_failure_is_memory_error(self):
        with pytest.raises(MemoryError):
            DenseWavefrontStore(10 ** 9)


class TestOffsetWidth:
    def test_narrow_dtype_warns(self):
        with pytest.warns(NarrowOffsetWarning, match="10922x10922"):
            AmortizedWavefrontStore(8, dtype=np.int16)

    def test_warned_limit_matches_capacity_check(self):
        with pytest.warns(NarrowOffsetWarning):
            store = AmortizedWavefrontStore(40_000, dtype=np.int16)
        store.check_capacity(10_922, 10_922)
        with pytest.raises(OffsetOverflowError):
            store.check_capacity(10_923, 10_923)

    def test_overflow_is_checked(self):
        with pytest.warns(NarrowOffsetWarning):
            store = AmortizedWavefrontStore(40_000, dtype=np.int16)
        store.check_capacity(100, 100)
        with pytest.raises(OffsetOverflowError, match="int16"):
            store.check_capacity(20_000, 20_000)

    def test_default_dtype_is_wide(self):
        store = AmortizedWavefrontStore(40_000)
        store.check_capacity(20_000, 20_000)
        assert store.dtype == np.int32


class TestAlignedAllocation:
    def test_aligned_zeros(self):
        data = aligned_zeros(100, np.int32, PAGE_SIZE)
        assert data.ctypes.data % PAGE_SIZE == 0
        assert data.dtype == np.int32
        assert len(data) == 100
        assert not data.any()

    def test_unaligned_is_plain_zeros(self):
        data = aligned_zeros(5, np.int16)
        assert data.dtype == np.int16
        np.testing.assert_array_equal(data, np.zeros(5))

    def test_empty(self):
        assert len(aligned_zeros(0, np.int32, PAGE_SIZE)) == 0

    def test_failure(self):
        with pytest.raises(AllocationError):
            aligned_zeros(10 ** 18, np.int32, PAGE_SIZE)

    @pytest.mark.parametrize('name', ['amortized', 'dense'])
    def test_store_buffers(self, name):
        store = WavefrontStore.create(name, 6, aligned=True)
        assert store.alignment == PAGE_SIZE
        store.reset()
        for d in range(1, 4):
            w = store.allocate(d, -d, d)
            w[d] = d
            assert store.get(d, d) == d
        assert store.view(0)[0].ctypes.data % PAGE_SIZE == 0

    def test_default_alignment(self):
        assert WavefrontStore.create('amortized', 4).alignment is None
