import weakref
from .value import format_value


class Node:
    """
    One vertex of the computation graph, stored as a payload in the graph's arena.

    Attributes
    ----------
    value : torch.Tensor
        Forward result, computed once at creation.
    operator : Operator | None
        ``None`` for leaves.
    inputs : tuple[int, ...]
        Arena indices of the operands, in the order the operator received them.
    """
    __slots__ = ('value', 'operator', 'inputs', '_node_id')

    def __init__(self, value, operator=None, inputs=()):
        if operator is None and inputs:
            raise ValueError("A leaf node cannot have inputs.")
        self.value = value
        self.operator = operator
        self.inputs = tuple(inputs)
        self._node_id = None

    @property
    def is_leaf(self):
        return self.operator is None

    def __repr__(self):
        op_name = 'leaf' if self.is_leaf else type(self.operator).__name__
        return f"Node(id={self._node_id}, op={op_name}, inputs={list(self.inputs)}, value=[{format_value(self.value)}])"


class NodeRef:
    """
    Opaque handle to a node owned by a Graph.

    The handle keeps only a weak reference to its graph, so holding handles
    never keeps a torn-down graph alive.
    """
    __slots__ = ('_graph_ref', '_graph_id', 'index', 'generation', '__weakref__')

    def __init__(self, graph, index, generation=0):
        self._graph_ref = weakref.ref(graph)
        self._graph_id = graph._uid
        self.index = index
        self.generation = generation

    @property
    def graph(self):
        graph = self._graph_ref()
        if graph is None:
            raise ReferenceError("The graph owning this node no longer exists.")
        return graph

    def belongs_to(self, graph):
        return self._graph_ref() is graph

    @property
    def node(self):
        return self.graph.resolve(self)

    @property
    def value(self):
        return self.node.value

    @property
    def is_leaf(self):
        return self.node.is_leaf

    def __eq__(self, other):
        if not isinstance(other, NodeRef):
            return NotImplemented
        return (self._graph_id, self.index, self.generation) == (other._graph_id, other.index, other.generation)

    def __hash__(self):
        return hash((self._graph_id, self.index, self.generation))

    def __repr__(self):
        return f"NodeRef(index={self.index})"
