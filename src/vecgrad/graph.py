import itertools
import logging
from collections import deque
import rustworkx as rx
from .node import Node, NodeRef
from .operator import Operator
from .value import as_value, zeros_like_value

logger = logging.getLogger(__name__)
_graph_ids = itertools.count()


class Graph:
    """
    Owns every node and operator of one computation and computes gradients over them.

    Nodes live in a ``rustworkx.PyDiGraph`` arena: the integer index rustworkx
    hands out is the node's identity, and each (input position, input node) pair
    is an edge from the input to the consumer. Clients only ever see ``NodeRef``
    handles. A Graph is not meant to be shared between threads.
    """
    __slots__ = ('_arena', '_uid', '_generation', '_check_cycles', '_auto_cleanup', '__weakref__')

    def __init__(self, check_for_cycles=True, auto_cleanup=True):
        self._arena = rx.PyDiGraph()
        self._uid = next(_graph_ids)
        self._generation = 0
        self._check_cycles = check_for_cycles
        self._auto_cleanup = auto_cleanup

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self._check_cycles and self.check_cycle():
            raise RuntimeError("Cycle detected in computation graph on context exit.")
        if self._auto_cleanup:
            self.teardown()

    def __del__(self):
        arena = getattr(self, '_arena', None)
        if arena is not None:
            arena.clear()

    # --- construction ---

    def create_leaf(self, value):
        node = Node(as_value(value))
        return self._register(node)

    def create_node(self, inputs, operator):
        if not isinstance(operator, Operator):
            raise TypeError(f"Expected an Operator instance, got {type(operator).__name__}.")
        input_ids = [self._node_id(handle) for handle in inputs]
        if operator.has_forwarded:
            logger.warning(
                f"{operator!r} is being reused for a new node; its cached state now belongs to the newest node."
            )
        value = operator.forward([self._arena[i].value for i in input_ids])
        handle = self._register(Node(value, operator, input_ids))
        for position, input_id in enumerate(input_ids):
            self._arena.add_edge(input_id, handle.index, position)
        logger.debug(f"Created node {handle.index} = {operator!r}{input_ids}, length {value.shape[0]}")
        return handle

    def __call__(self, inputs, operator):
        return self.create_node(inputs, operator)

    def _register(self, node):
        node_id = self._arena.add_node(node)
        node._node_id = node_id
        return NodeRef(self, node_id, self._generation)

    def _node_id(self, handle):
        if not isinstance(handle, NodeRef):
            raise TypeError(f"Expected a NodeRef, got {type(handle).__name__}.")
        if not handle.belongs_to(self):
            raise ValueError(f"{handle!r} belongs to a different graph.")
        if handle.generation != self._generation or not self._arena.has_node(handle.index):
            raise ValueError(f"{handle!r} does not exist in this graph (was it torn down?).")
        return handle.index

    def resolve(self, handle):
        return self._arena[self._node_id(handle)]

    # --- gradients ---

    def _find_outdegrees(self, target_id):
        # every edge occurrence is counted, but a node is only expanded once
        outdegrees = {target_id: 0}
        visited = {target_id}
        queue = deque([target_id])
        while queue:
            node = self._arena[queue.popleft()]
            for input_id in node.inputs:
                outdegrees[input_id] = outdegrees.get(input_id, 0) + 1
                if input_id not in visited:
                    visited.add(input_id)
                    queue.append(input_id)
        return outdegrees

    def compute_gradients(self, target, wrt, seed=None):
        """
        Returns d(target)/d(node) for every handle in ``wrt``, in the same order.

        ``target`` must hold a length-1 value unless ``seed`` (a vector of the
        target's length) is given. Nodes that ``target`` does not depend on get
        a zero vector of their own length.
        """
        target_id = self._node_id(target)
        wrt_ids = [self._node_id(handle) for handle in wrt]
        target_value = self._arena[target_id].value
        if seed is None:
            if target_value.shape[0] != 1:
                raise ValueError(
                    f"Target has length {target_value.shape[0]}; pass a seed of that length for non-scalar targets."
                )
            seed = [1.0]
        seed = as_value(seed)
        if seed.shape[0] != target_value.shape[0]:
            raise ValueError(f"Seed has length {seed.shape[0]} but the target has length {target_value.shape[0]}.")

        outdegrees = self._find_outdegrees(target_id)
        gradients = {target_id: seed}
        queue = deque([target_id])
        processed = set()
        while queue:
            node_id = queue.popleft()
            if node_id in processed:
                raise RuntimeError(f"Node {node_id} was scheduled twice; the graph contains a cycle.")
            processed.add(node_id)
            node = self._arena[node_id]
            if node.is_leaf:
                continue
            input_grads = node.operator.backward(gradients[node_id])
            if len(input_grads) != len(node.inputs):
                raise RuntimeError(
                    f"{node.operator!r} returned {len(input_grads)} adjoints for {len(node.inputs)} inputs."
                )
            for input_id, input_grad in zip(node.inputs, input_grads):
                if input_id not in gradients:
                    gradients[input_id] = zeros_like_value(self._arena[input_id].value)
                gradients[input_id].add_(input_grad)
                outdegrees[input_id] -= 1
                if outdegrees[input_id] == 0:
                    queue.append(input_id)

        if len(processed) != len(outdegrees):
            raise RuntimeError(
                f"Backward pass reached {len(processed)} of {len(outdegrees)} nodes; the graph contains a cycle."
            )
        logger.debug(f"Computed gradients of node {target_id} over {len(processed)} nodes")

        return [
            gradients[i].clone() if i in gradients else zeros_like_value(self._arena[i].value)
            for i in wrt_ids
        ]

    # --- teardown ---

    def check_cycle(self):
        """
        Reports whether the arena holds a cycle.

        Nodes built through ``create_node`` can only point at nodes that already
        exist, so this stays False unless the arena or ``Node.inputs`` is edited
        by hand.
        """
        return not rx.is_directed_acyclic_graph(self._arena)

    def teardown(self):
        if self._arena.num_nodes():
            logger.debug(f"Tearing down {self!r}")
        self._arena.clear()
        self._generation += 1

    clear = teardown

    def __len__(self):
        return self._arena.num_nodes()

    def __repr__(self):
        return f"Graph(nodes={self._arena.num_nodes()}, edges={self._arena.num_edges()})"
