import numbers
import torch
from .config import device, dtype


def as_value(data):
    """
    Coerces ``data`` into a Value: a fresh one-dimensional float64 tensor.

    Numbers become length-1 vectors. Lists, tuples, numpy arrays and tensors
    are copied, so mutating the source afterwards never reaches the graph.
    """
    if isinstance(data, numbers.Number):
        data = [data]
    tensor = torch.as_tensor(data, dtype=dtype, device=device).detach().clone()
    if tensor.ndim != 1:
        raise ValueError(f"A value must be one-dimensional, got shape {tuple(tensor.shape)}.")
    if tensor.numel() == 0:
        raise ValueError("A value must hold at least one element.")
    return tensor


def zeros_like_value(value):
    return torch.zeros(value.shape[0], dtype=dtype, device=device)


def check_same_length(values, op_name):
    """Raises ValueError unless every vector in ``values`` has the same length."""
    length = values[0].shape[0]
    for position, value in enumerate(values):
        if value.shape[0] != length:
            raise ValueError(
                f"{op_name} expects equal-length inputs, input 0 has length {length} "
                f"but input {position} has length {value.shape[0]}."
            )
    return length


def format_value(value):
    return " ".join(f"{x:g}" for x in value.tolist())
