import numpy as np
from jiwer import wer, cer


class OutputMismatchError(AssertionError):

    def __init__(self, index, observed, expected):
        self.index = index
        self.observed = observed
        self.expected = expected
        super().__init__("output does not concord to each other "
                         f"x = {observed}, expectX = {expected}, idx = {index}")


def verify_outputs(output, expected, abs_tol=1e-2, rel_tol=1e-1):
    """Compare a forward pass against reference values element by element.

    A zero reference is checked with ``abs_tol``, anything else with
    ``rel_tol`` relative to the reference. Raises on the first element
    outside tolerance, otherwise returns the summed absolute difference.
    """
    output = np.asarray(output, dtype=np.float64).reshape(-1)
    expected = np.asarray(expected, dtype=np.float64).reshape(-1)
    if output.size != expected.size:
        raise ValueError(f"model produced {output.size} values but {expected.size} references were given")

    acc_diff = 0.0
    for idx, (x, expect_x) in enumerate(zip(output, expected)):
        diff = abs(x - expect_x)
        if expect_x == 0:
            ok = diff < abs_tol
        else:
            ok = diff / abs(expect_x) < rel_tol
        if not ok:
            raise OutputMismatchError(idx, float(x), float(expect_x))
        acc_diff += diff
    return float(acc_diff)


def calculate_wer(reference_texts, hypothesis_texts):

    return wer(reference_texts, hypothesis_texts)

def calculate_cer(reference_texts, hypothesis_texts):

    return cer(reference_texts, hypothesis_texts)
