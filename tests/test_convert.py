import numpy as np
import pytest

from utils.convert import (
    WeightLayoutError,
    partition_into_groups,
    split_gate_blocks,
    to_channel_major,
    to_gate_block_layout,
    to_group_major,
)


def test_partition_into_groups_rows():
    groups = partition_into_groups([1, 2, 3, 4, 5, 6], 2)
    assert groups.shape == (3, 2)
    np.testing.assert_array_equal(groups[1], [3, 4])


@pytest.mark.parametrize("width", [0, -2])
def test_partition_rejects_non_positive_width(width):
    with pytest.raises(WeightLayoutError):
        partition_into_groups([1.0, 2.0], width)


def test_channel_major_small_matrix():
    np.testing.assert_array_equal(to_channel_major([1, 2, 3, 4, 5, 6], 2), [1, 3, 5, 2, 4, 6])


def test_group_major_small_matrix_unchanged():
    np.testing.assert_array_equal(to_group_major([1, 2, 3, 4, 5, 6], 2), [1, 2, 3, 4, 5, 6])


@pytest.mark.parametrize("rows,cols", [(1, 1), (3, 2), (4, 5), (7, 3)])
def test_group_major_is_identity(rows, cols):
    a = np.random.RandomState(0).randn(rows * cols)
    np.testing.assert_array_equal(to_group_major(a, cols), a)


@pytest.mark.parametrize("rows,cols", [(1, 4), (3, 2), (4, 5), (6, 6)])
def test_channel_major_twice_recovers_original(rows, cols):
    a = np.random.RandomState(1).randn(rows * cols)
    once = to_channel_major(a, cols)
    np.testing.assert_array_equal(to_channel_major(once, rows), a)


def test_converters_do_not_modify_input():
    a = np.arange(12, dtype=np.float64)
    original = a.copy()
    out = to_channel_major(a, 3)
    out[0] = 100.0
    to_group_major(a, 4)[0] = -1.0
    np.testing.assert_array_equal(a, original)


@pytest.mark.parametrize("convert", [to_channel_major, to_group_major])
def test_length_not_multiple_of_channel_size(convert):
    with pytest.raises(WeightLayoutError, match="length 7"):
        convert(list(range(7)), 2)


def test_gate_block_single_unit():
    origin = np.array([10.0, 11.0, 12.0, 13.0, 14.0, 15.0])
    np.testing.assert_array_equal(to_gate_block_layout(origin, 1),
                                  [10.0, 12.0, 14.0, 11.0, 13.0, 15.0])


def test_gate_block_ranges_two_units():
    n = 2
    # rows: Uf(2) Ub(2) Wf(2) Wb(2) bf bb, each row tagged by its index
    rows = np.repeat(np.arange(2 * (2 * n + 1)), n).astype(np.float64)
    out = to_gate_block_layout(rows, n).reshape(-1, n)[:, 0]
    np.testing.assert_array_equal(out, [0, 1, 4, 5, 8, 2, 3, 6, 7, 9])


@pytest.mark.parametrize("n", [1, 2, 3, 8])
def test_gate_block_conserves_elements(n):
    a = np.random.RandomState(n).randn(2 * (2 * n + 1) * n)
    out = to_gate_block_layout(a, n)
    assert out.size == a.size
    np.testing.assert_array_equal(np.sort(out), np.sort(a))


def test_gate_block_rejects_mismatched_sizes():
    with pytest.raises(WeightLayoutError, match="n_in == n_out"):
        to_gate_block_layout(np.zeros(2 * (2 + 3 + 1) * 3), 3, n_in=2)


def test_gate_block_rejects_wrong_row_count():
    with pytest.raises(WeightLayoutError, match="expected 10 rows"):
        to_gate_block_layout(np.zeros(2 * 8), 2)


def test_split_gate_blocks_names_pieces():
    n = 2
    rows = np.repeat(np.arange(2 * (2 * n + 1)), n).astype(np.float64)
    blocks = split_gate_blocks(to_gate_block_layout(rows, n), n)
    np.testing.assert_array_equal(blocks.forward.U[:, 0], [0, 1])
    np.testing.assert_array_equal(blocks.forward.W[:, 0], [4, 5])
    np.testing.assert_array_equal(blocks.forward.bias, [8, 8])
    np.testing.assert_array_equal(blocks.backward.U[:, 0], [2, 3])
    np.testing.assert_array_equal(blocks.backward.W[:, 0], [6, 7])
    np.testing.assert_array_equal(blocks.backward.bias, [9, 9])
    assert blocks.forward.U.shape == (n, n)


def test_split_gate_blocks_wrong_length():
    with pytest.raises(WeightLayoutError):
        split_gate_blocks(np.zeros(11), 2)
