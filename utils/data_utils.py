import os
import numpy as np


def load_flat_array(path: str) -> np.ndarray:
    """Read a text export into one flat float64 array.

    Each line holds one value or a comma separated list of values; lines
    are concatenated in file order and blank lines are skipped.
    """
    values = []
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if line == "":
                continue
            for token in line.split(','):
                try:
                    values.append(float(token))
                except ValueError:
                    raise ValueError(f"{path}:{line_no}: cannot parse {token.strip()!r} as a float") from None
    return np.asarray(values, dtype=np.float64)


class NervanaExport:
    """File layout of a neon DeepSpeech2 dump inside one directory."""

    def __init__(self, data_dir: str, input_name='inputdata.txt', output_name='output.txt',
                 conv_name='dp2conv.txt', layer_prefix='layer', linear_prefix='linear'):
        self.data_dir = data_dir
        self.input_name = input_name
        self.output_name = output_name
        self.conv_name = conv_name
        self.layer_prefix = layer_prefix
        self.linear_prefix = linear_prefix

    def _path(self, name):
        return os.path.join(self.data_dir, name)

    def inputs(self):
        return load_flat_array(self._path(self.input_name))

    def expected_outputs(self):
        return load_flat_array(self._path(self.output_name))

    def conv_weights(self):
        return load_flat_array(self._path(self.conv_name))

    def birnn_weights(self, layer: int):
        return load_flat_array(self._path(f"{self.layer_prefix}{layer}.txt"))

    def linear_weights(self, index: int):
        return load_flat_array(self._path(f"{self.linear_prefix}{index}.txt"))
