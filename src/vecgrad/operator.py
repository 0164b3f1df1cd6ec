from .value import as_value


class Operator:
    """
    Base class for every differentiable primitive.

    A subclass implements ``_forward(values)`` returning the output Value and
    ``_backward(grad)`` returning one adjoint per input, in input order.
    The public ``forward``/``backward`` wrap those hooks with the arity and
    shape checks shared by all operators.

    An instance caches whatever its backward pass needs from the most recent
    ``forward`` call, so it backs exactly one live node at a time.
    """
    __slots__ = ('_input_sizes', '_output_size', '__weakref__')
    arity = 1  # None means any number of inputs, at least one

    def __init__(self):
        self._input_sizes = None
        self._output_size = None

    @property
    def fan_in(self):
        return None if self._input_sizes is None else len(self._input_sizes)

    @property
    def has_forwarded(self):
        return self._output_size is not None

    def forward(self, values):
        values = [as_value(v) for v in values]
        op_name = type(self).__name__
        if not values:
            raise ValueError(f"{op_name} needs at least one input.")
        if self.arity is not None and len(values) != self.arity:
            raise ValueError(f"{op_name} takes {self.arity} input(s), got {len(values)}.")

        output = as_value(self._forward(values))
        self._input_sizes = tuple(v.shape[0] for v in values)
        self._output_size = output.shape[0]
        return output

    def backward(self, grad):
        op_name = type(self).__name__
        if not self.has_forwarded:
            raise RuntimeError(f"{op_name}.backward called before forward.")
        grad = as_value(grad)
        if grad.shape[0] != self._output_size:
            raise ValueError(
                f"{op_name}.backward expects a gradient of length {self._output_size}, got {grad.shape[0]}."
            )

        input_grads = [as_value(g) for g in self._backward(grad)]
        if len(input_grads) != len(self._input_sizes):
            raise RuntimeError(
                f"{op_name}.backward returned {len(input_grads)} adjoints for {len(self._input_sizes)} inputs."
            )
        for position, (g, size) in enumerate(zip(input_grads, self._input_sizes)):
            if g.shape[0] != size:
                raise ValueError(
                    f"{op_name}.backward returned an adjoint of length {g.shape[0]} for input {position} of length {size}."
                )
        return input_grads

    def _forward(self, values):
        raise NotImplementedError("Subclasses of Operator must implement _forward.")

    def _backward(self, grad):
        raise NotImplementedError("Subclasses of Operator must implement _backward.")

    def __repr__(self):
        return f"{type(self).__name__}()"


class ElementwiseOperator(Operator):
    """Single-input operator whose backward is ``grad * derivative`` element by element."""
    __slots__ = ('_cache',)

    def __init__(self):
        super().__init__()
        self._cache = None

    def _backward(self, grad):
        return [grad * self._derivative()]

    def _derivative(self):
        raise NotImplementedError
