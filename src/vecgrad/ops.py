import torch
import torch.nn.functional as F
from .operator import Operator, ElementwiseOperator
from .value import check_same_length

LOG_EPSILON = 1e-12

__all__ = [
    "Add", "Subtract", "Scale", "Multiply",
    "Exp", "Log", "Pow",
    "Concat", "ReduceSum", "Dot",
    "ReLU", "Softmax", "Sigmoid", "Tanh",
    "LOG_EPSILON",
]


class Add(Operator):
    """Sum of any number of equal-length vectors."""
    __slots__ = ()
    arity = None

    def _forward(self, values):
        check_same_length(values, "Add")
        return torch.stack(values).sum(dim=0)

    def _backward(self, grad):
        return [grad.clone() for _ in range(self.fan_in)]


class Subtract(Operator):
    __slots__ = ()
    arity = 2

    def _forward(self, values):
        check_same_length(values, "Subtract")
        return values[0] - values[1]

    def _backward(self, grad):
        return [grad.clone(), -grad]


class Scale(Operator):
    """Multiplies a vector by a constant factor."""
    __slots__ = ('factor',)

    def __new__(cls, factor=1.0):
        assert isinstance(factor, (int, float))
        return super().__new__(cls)

    def __init__(self, factor=1.0):
        super().__init__()
        self.factor = float(factor)

    def _forward(self, values):
        return values[0] * self.factor

    def _backward(self, grad):
        return [grad * self.factor]

    def __repr__(self):
        return f"Scale(factor={self.factor})"


class Multiply(Operator):
    """Elementwise (Hadamard) product of two vectors."""
    __slots__ = ('_cached_inputs',)
    arity = 2

    def __init__(self):
        super().__init__()
        self._cached_inputs = None

    def _forward(self, values):
        check_same_length(values, "Multiply")
        self._cached_inputs = (values[0], values[1])
        return values[0] * values[1]

    def _backward(self, grad):
        x1, x2 = self._cached_inputs
        return [grad * x2, grad * x1]


class Exp(ElementwiseOperator):
    __slots__ = ()

    def _forward(self, values):
        self._cache = torch.exp(values[0])
        return self._cache

    def _derivative(self):
        return self._cache


class Log(ElementwiseOperator):
    """
    Natural logarithm with entries floored at ``eps``.

    Both passes use the floored input, so non-positive entries give
    ``log(eps)`` forward and ``grad / eps`` backward instead of nan/inf.
    """
    __slots__ = ('eps',)

    def __new__(cls, eps=LOG_EPSILON):
        assert eps > 0
        return super().__new__(cls)

    def __init__(self, eps=LOG_EPSILON):
        super().__init__()
        self.eps = eps

    def _forward(self, values):
        self._cache = torch.clamp(values[0], min=self.eps)
        return torch.log(self._cache)

    def _derivative(self):
        return 1.0 / self._cache

    def __repr__(self):
        return f"Log(eps={self.eps})"


class Pow(ElementwiseOperator):
    """Raises every entry to a constant exponent."""
    __slots__ = ('exponent',)

    def __new__(cls, exponent):
        assert isinstance(exponent, (int, float))
        return super().__new__(cls)

    def __init__(self, exponent):
        super().__init__()
        self.exponent = exponent

    def _forward(self, values):
        self._cache = values[0]
        return torch.pow(values[0], self.exponent)

    def _derivative(self):
        if self.exponent == 0:
            return torch.zeros_like(self._cache)
        return self.exponent * torch.pow(self._cache, self.exponent - 1)

    def __repr__(self):
        return f"Pow(exponent={self.exponent})"


class Concat(Operator):
    """Joins any number of vectors end to end; backward splits the gradient back."""
    __slots__ = ()
    arity = None

    def _forward(self, values):
        return torch.cat(values)

    def _backward(self, grad):
        assert sum(self._input_sizes) == grad.shape[0]
        return list(torch.split(grad, list(self._input_sizes)))


class ReduceSum(Operator):
    __slots__ = ()

    def _forward(self, values):
        return values[0].sum().reshape(1)

    def _backward(self, grad):
        return [grad[0].expand(self._input_sizes[0])]


class Dot(Operator):
    """Inner product of two equal-length vectors, as a length-1 vector."""
    __slots__ = ('_cached_inputs',)
    arity = 2

    def __init__(self):
        super().__init__()
        self._cached_inputs = None

    def _forward(self, values):
        check_same_length(values, "Dot")
        self._cached_inputs = (values[0], values[1])
        return torch.dot(values[0], values[1]).reshape(1)

    def _backward(self, grad):
        x1, x2 = self._cached_inputs
        return [grad[0] * x2, grad[0] * x1]


class ReLU(ElementwiseOperator):
    __slots__ = ()

    def _forward(self, values):
        self._cache = (values[0] > 0).to(values[0].dtype)
        return F.relu(values[0])

    def _derivative(self):
        return self._cache


class Softmax(Operator):
    __slots__ = ('_cached_output',)

    def __init__(self):
        super().__init__()
        self._cached_output = None

    def _forward(self, values):
        self._cached_output = F.softmax(values[0], dim=0)
        return self._cached_output

    def _backward(self, grad):
        y = self._cached_output
        return [y * (grad - torch.dot(grad, y))]


class Sigmoid(ElementwiseOperator):
    __slots__ = ()

    def _forward(self, values):
        self._cache = torch.sigmoid(values[0])
        return self._cache

    def _derivative(self):
        return self._cache * (1 - self._cache)


class Tanh(ElementwiseOperator):
    __slots__ = ()

    def _forward(self, values):
        self._cache = torch.tanh(values[0])
        return self._cache

    def _derivative(self):
        return 1 - self._cache ** 2
