import logging
import torch
import torch.nn as nn
from utils.convert import WeightLayoutError, split_gate_blocks

logger = logging.getLogger(__name__)


def _copy_into(param: torch.Tensor, values, name: str):
    values = torch.as_tensor(values, dtype=param.dtype)
    if values.numel() != param.numel():
        raise WeightLayoutError(
            f"{name}: expected {param.numel()} values for shape {tuple(param.shape)}, got {values.numel()}")
    with torch.no_grad():
        param.copy_(values.reshape(param.shape))


class RecurrentCell(nn.Module):
    """Simple recurrent cell: h_t = clamp(U x_t + b + W h_{t-1}, 0, clip)."""
    def __init__(self, input_size: int, hidden_size: int, clip: float = 20.0):
        super().__init__()
        self.hidden_size = hidden_size
        self.i2h = nn.Linear(input_size, hidden_size)                 # U and bias
        self.h2h = nn.Linear(hidden_size, hidden_size, bias=False)    # W
        self.activation = nn.Hardtanh(0, clip)

    def forward(self, x: torch.Tensor, reverse: bool = False) -> torch.Tensor:
        # x: [B, T, input_size]
        B, T, _ = x.shape
        projected = self.i2h(x)                                       # [B, T, hidden]
        h = x.new_zeros(B, self.hidden_size)
        outputs = [None] * T
        steps = range(T - 1, -1, -1) if reverse else range(T)
        for t in steps:
            h = self.activation(projected[:, t] + self.h2h(h))
            outputs[t] = h
        return torch.stack(outputs, dim=1)                            # [B, T, hidden]


class BiRNN(nn.Module):
    def __init__(self, input_size: int, hidden_size: int, clone_input: bool = True, clip: float = 20.0):
        """
        Bidirectional recurrent layer whose output is [forward; backward] on the feature axis.
        :param input_size: Features seen by each direction.
        :param hidden_size: Hidden units per direction.
        :param clone_input: Feed the full input to both directions. When False the input
            holds 2 * input_size features; the first half goes forward, the second backward.
        :param clip: Upper bound of the clamped activation.
        """
        super().__init__()
        self.clone_input = clone_input
        self.forward_cell = RecurrentCell(input_size, hidden_size, clip)
        self.backward_cell = RecurrentCell(input_size, hidden_size, clip)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if self.clone_input:
            x_fwd = x_bwd = x
        else:
            x_fwd, x_bwd = x.chunk(2, dim=-1)
        out_fwd = self.forward_cell(x_fwd)
        out_bwd = self.backward_cell(x_bwd, reverse=True)
        return torch.cat([out_fwd, out_bwd], dim=-1)                  # [B, T, 2 * hidden]

    def load_blocks(self, blocks):
        for cell, direction, name in ((self.forward_cell, blocks.forward, 'forward'),
                                      (self.backward_cell, blocks.backward, 'backward')):
            _copy_into(cell.i2h.weight, direction.U, f"{name} U")
            _copy_into(cell.h2h.weight, direction.W, f"{name} W")
            _copy_into(cell.i2h.bias, direction.bias, f"{name} bias")


class DeepSpeech2(nn.Module):
    """
    Conv -> ReLU -> BiRNN x depth -> Linear -> Hardtanh(0, 20) -> Linear,
    laid out so that weights exported by neon can be copied in directly.
    """
    def __init__(
        self,
        depth: int = 1,
        n_features: int = 13,
        conv_channels: int = 1152,
        kernel_size=(13, 11),
        stride=(1, 3),
        padding=(0, 5),
        n_chars: int = 29,
        clip: float = 20.0
    ):
        """
        :param depth: Number of bidirectional recurrent layers.
        :param n_features: Spectrogram height; the convolution collapses it to 1.
        :param conv_channels: Convolution output channels, also the recurrent hidden size.
        :param kernel_size: Convolution kernel as (height, width).
        :param stride: Convolution stride as (height, width).
        :param padding: Convolution padding as (height, width).
        :param n_chars: Output alphabet size including the CTC blank.
        :param clip: Upper bound of the clamped activations.
        """
        super().__init__()
        if kernel_size[0] != n_features:
            raise ValueError(f"kernel height {kernel_size[0]} must equal n_features {n_features}")
        self.depth = depth
        self.hidden_size = conv_channels

        self.conv = nn.Conv2d(1, conv_channels, kernel_size=kernel_size, stride=stride, padding=padding)
        self.relu = nn.ReLU()
        self.brnn = nn.Sequential(*[
            BiRNN(conv_channels, conv_channels, clone_input=(i == 0), clip=clip)
            for i in range(depth)
        ])
        self.linear1 = nn.Linear(2 * conv_channels, conv_channels, bias=False)
        self.clip = nn.Hardtanh(0, clip)
        self.linear2 = nn.Linear(conv_channels, n_chars, bias=False)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # x: [B, 1, n_features, T_in]
        x = self.relu(self.conv(x))          # [B, C, 1, T]
        x = x.squeeze(2).transpose(1, 2)     # [B, T, C]
        x = self.brnn(x)                     # [B, T, 2C]
        x = self.clip(self.linear1(x))       # [B, T, C]
        return self.linear2(x)               # [B, T, n_chars]

    def reset(self):
        with torch.no_grad():
            self.conv.weight.fill_(0.0)
            self.conv.bias.fill_(0.0)

    def set_conv_weight(self, weights):
        """Copy a channel-major kernel into ``[C, 1, kH, kW]``."""
        _copy_into(self.conv.weight, weights, "conv weight")

    def set_birnn_weight(self, weights):
        """Load one gate-block array per recurrent layer."""
        if len(weights) != self.depth:
            raise WeightLayoutError(f"expected weights for {self.depth} recurrent layers, got {len(weights)}")
        for i, layer_weights in enumerate(weights):
            self.brnn[i].load_blocks(split_gate_blocks(layer_weights, self.hidden_size))
            logger.debug("loaded recurrent layer %d", i)

    def set_linear_weight(self, weights, num: int):
        if num == 0:
            _copy_into(self.linear1.weight, weights, "linear1 weight")
        elif num == 1:
            _copy_into(self.linear2.weight, weights, "linear2 weight")
        else:
            raise ValueError(f"Unsupported linear index: {num}")
