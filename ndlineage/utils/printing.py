"""
Text rendering of array contents
"""

import numpy as np


def format_values(values: np.ndarray, print_length: int = 1000, layer_length: int = 10) -> str:
    """
    Render a host copy of an array as nested brackets

    Outer dimensions longer than ``layer_length`` show their first
    ``layer_length`` rows followed by a "... with length N" marker; 1-D
    runs longer than ``print_length`` show the first and last 10 values.
    """
    if values.ndim == 0:
        return str(values.item())
    return _format(values, values.ndim, print_length, layer_length)


def _format(values, total, print_length, layer_length):
    space = total - values.ndim
    pad = " " * space
    if values.ndim != 1:
        length = values.shape[0]
        postfix = ""
        if length > layer_length:
            postfix = f"\n{' ' * (space + 1)}... with length {length}\n"
            length = layer_length
        rows = "".join(
            _format(values[i], total, print_length, layer_length) + "\n"
            for i in range(length)
        )
        return f"{pad}[\n{rows}{pad}{postfix}{pad}]"

    if values.shape[0] > print_length:
        front = ",".join(str(v) for v in values[:10].tolist())
        back = ",".join(str(v) for v in values[-10:].tolist())
        return f"{pad}[{front}\n ... {back}]"
    return f"{pad}[{','.join(str(v) for v in values.tolist())}]"
