"""Re-order flat neon weight exports into the layouts PyTorch layers expect.

Every exported tensor arrives as one flat array that is conceptually a stack
of equal-width rows ("groups"). The converters below pick those rows apart
and re-flatten them; no value is ever modified, only moved.
"""
import logging
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)

GateBlocks = namedtuple('GateBlocks', ['U', 'W', 'bias'])
BiRNNBlocks = namedtuple('BiRNNBlocks', ['forward', 'backward'])


class WeightLayoutError(ValueError):
    """A flat weight array does not fit the layout it is being converted to."""


def partition_into_groups(origin, group_width: int) -> np.ndarray:
    """Split ``origin`` into rows of ``group_width`` values.

    Returns a ``[num_groups, group_width]`` array; row ``i`` is the i-th
    group of the input.
    """
    flat = np.asarray(origin).reshape(-1)
    if group_width <= 0:
        raise WeightLayoutError(f"group width must be positive, got {group_width}")
    if flat.size % group_width != 0:
        raise WeightLayoutError(
            f"array of length {flat.size} cannot be split into groups of {group_width}")
    return flat.reshape(-1, group_width)


def to_channel_major(origin, channel_size: int) -> np.ndarray:
    """Channel index outer, group index inner (convolution kernels, references)."""
    groups = partition_into_groups(origin, channel_size)
    return groups.T.reshape(-1).copy()


def to_group_major(origin, channel_size: int) -> np.ndarray:
    """Group index outer, channel index inner (linear weights)."""
    groups = partition_into_groups(origin, channel_size)
    return groups.reshape(-1).copy()


def _gate_block_ranges(n_in, n_out):
    heights = 2 * (n_in + n_out + 1)
    forward = [(0, n_in), (2 * n_in, 2 * n_in + n_out), (heights - 2, heights - 1)]
    backward = [(n_in, 2 * n_in), (2 * n_in + n_out, 2 * n_in + 2 * n_out), (heights - 1, heights)]
    return forward + backward


def to_gate_block_layout(origin, n_out: int, n_in: int = None) -> np.ndarray:
    """Re-order one bidirectional recurrent layer.

    neon stores the layer as ``2 * (n_in + n_out + 1)`` rows of width
    ``n_out``: both input weights, both recurrent weights, then both biases.
    The result holds the forward U, W, bias followed by the backward U, W,
    bias.
    """
    if n_in is None:
        n_in = n_out
    if n_in != n_out:
        raise WeightLayoutError(
            f"gate block layout requires n_in == n_out, got n_in={n_in}, n_out={n_out}")
    groups = partition_into_groups(origin, n_out)
    heights = 2 * (n_in + n_out + 1)
    if groups.shape[0] != heights:
        raise WeightLayoutError(
            f"expected {heights} rows of width {n_out} for a bidirectional layer, "
            f"got {groups.shape[0]}")

    blocks = [groups[start:end] for start, end in _gate_block_ranges(n_in, n_out)]
    logger.debug("reordered bidirectional layer: %d rows of width %d", heights, n_out)
    return np.concatenate(blocks).reshape(-1)


def split_gate_blocks(converted, n_out: int) -> BiRNNBlocks:
    """Cut a gate-block array into named ``[n_out, n_out]`` / ``[n_out]`` pieces."""
    flat = np.asarray(converted).reshape(-1)
    square = n_out * n_out
    expected = 2 * (2 * square + n_out)
    if flat.size != expected:
        raise WeightLayoutError(
            f"expected {expected} values for a bidirectional layer of size {n_out}, got {flat.size}")

    directions = []
    for offset in (0, expected // 2):
        u = flat[offset:offset + square].reshape(n_out, n_out)
        w = flat[offset + square:offset + 2 * square].reshape(n_out, n_out)
        bias = flat[offset + 2 * square:offset + 2 * square + n_out]
        directions.append(GateBlocks(U=u, W=w, bias=bias))
    return BiRNNBlocks(*directions)
