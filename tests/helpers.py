import torch
import numpy as np


def torch_vjp(fn, inputs, grad):
    """Reference forward value and input gradients from PyTorch's own autograd."""
    with torch.enable_grad():
        xs = [torch.tensor(x, dtype=torch.float64, requires_grad=True) for x in inputs]
        out = fn(*xs)
        out.backward(torch.tensor(grad, dtype=torch.float64))
    return out.detach(), [x.grad for x in xs]


def assert_close(actual, expected, tolerance=1e-9, err_msg=""):
    np.testing.assert_allclose(
        np.asarray(actual, dtype=np.float64),
        np.asarray(expected, dtype=np.float64),
        rtol=tolerance,
        atol=tolerance,
        err_msg=err_msg,
    )
