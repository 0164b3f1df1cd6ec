import math
import pytest
import torch
from vecgrad import Graph
from vecgrad import ops
from vecgrad.operator import Operator
from helpers import torch_vjp, assert_close


class Recorder(Operator):
    """Identity operator that remembers every gradient it was asked to propagate."""
    __slots__ = ('seen',)

    def __init__(self):
        super().__init__()
        self.seen = []

    def _forward(self, values):
        return values[0]

    def _backward(self, grad):
        self.seen.append(grad.tolist())
        return [grad]


def test_chain_reduces_to_chain_rule():
    graph = Graph()
    values = [0.5, -0.1, 0.012]
    x = graph.create_leaf(values)
    y = graph.create_node([x], ops.Exp())
    out = graph.create_node([y], ops.ReduceSum())

    (grad,) = graph.compute_gradients(out, [x])
    assert_close(grad, [math.exp(v) for v in values])


def test_end_to_end_add_then_exp():
    graph = Graph()
    x = graph.create_leaf([0.5])
    y = graph.create_leaf([-0.1])
    s = graph.create_node([x, y], ops.Add())
    out = graph.create_node([s], ops.Exp())

    grad_x, grad_y = graph.compute_gradients(out, [x, y])
    assert_close(grad_x, [math.exp(0.4)])
    assert_close(grad_y, [math.exp(0.4)])


def test_diamond_sums_both_paths():
    graph = Graph()
    a = graph.create_leaf([2.0])
    b = graph.create_node([a], ops.Exp())
    c = graph.create_node([a], ops.Scale(3.0))
    d = graph.create_node([b, c], ops.Multiply())

    (grad,) = graph.compute_gradients(d, [a])
    # d = 3a * e^a, so dd/da = 3e^a + 3a * e^a
    through_b = 3 * 2.0 * math.exp(2.0)
    through_c = 3 * math.exp(2.0)
    assert_close(grad, [through_b + through_c])


def test_shared_node_propagates_only_after_all_contributions():
    graph = Graph()
    a = graph.create_leaf([1.0, 2.0])
    recorder = Recorder()
    shared = graph.create_node([a], recorder)
    left = graph.create_node([shared], ops.Scale(2.0))
    deep = graph.create_node([graph.create_node([shared], ops.Scale(5.0))], ops.Scale(1.0))
    total = graph.create_node([left, deep, shared], ops.Add())
    out = graph.create_node([total], ops.ReduceSum())

    (grad,) = graph.compute_gradients(out, [a])
    assert recorder.seen == [[8.0, 8.0]]
    assert grad.tolist() == [8.0, 8.0]


def test_repeated_input_counts_each_edge():
    graph = Graph()
    x = graph.create_leaf([3.0])
    square = graph.create_node([x, x], ops.Multiply())
    (grad,) = graph.compute_gradients(square, [x])
    assert grad.tolist() == [6.0]


def test_matches_pytorch_on_a_branching_graph():
    x_values = [0.5, -0.1, 0.012, 0.00122, -0.92]
    y_values = [-0.1, -0.019, -0.0965, 0.0127]

    graph = Graph()
    x = graph.create_leaf(x_values)
    y = graph.create_leaf(y_values)
    x_exp = graph([x], ops.Exp())
    joined = graph([x_exp, y], ops.Concat())
    squashed = graph([joined], ops.Tanh())
    branch = graph([graph([squashed], ops.Softmax()), squashed], ops.Dot())
    total = graph([graph([squashed], ops.ReduceSum()), branch, graph([x], ops.ReduceSum())], ops.Add())
    out = graph([graph([total], ops.Sigmoid())], ops.Scale(0.5))

    def reference(xt, yt):
        squashed_t = torch.tanh(torch.cat([torch.exp(xt), yt]))
        branch_t = torch.dot(torch.softmax(squashed_t, dim=0), squashed_t)
        total_t = squashed_t.sum() + branch_t + xt.sum()
        return (0.5 * torch.sigmoid(total_t)).reshape(1)

    expected_out, (expected_x, expected_y) = torch_vjp(reference, [x_values, y_values], [1.0])
    assert_close(out.value, expected_out)

    grad_x, grad_y = graph.compute_gradients(out, [x, y])
    assert grad_x.shape[0] == 5 and grad_y.shape[0] == 4
    assert_close(grad_x, expected_x)
    assert_close(grad_y, expected_y)


def test_gradient_of_target_with_respect_to_itself():
    graph = Graph()
    x = graph.create_leaf([0.3, 0.4])
    out = graph.create_node([x], ops.ReduceSum())
    (grad,) = graph.compute_gradients(out, [out])
    assert grad.tolist() == [1.0]

    vector = graph.create_node([x], ops.Tanh())
    (grad,) = graph.compute_gradients(vector, [vector], seed=[1.0, 1.0])
    assert grad.tolist() == [1.0, 1.0]


def test_unreached_nodes_get_zero_vectors():
    graph = Graph()
    x = graph.create_leaf([1.0])
    unused = graph.create_leaf([1.0, 2.0, 3.0])
    downstream = graph.create_node([x], ops.Exp())
    out = graph.create_node([x], ops.Scale(4.0))

    grad_x, grad_unused, grad_downstream = graph.compute_gradients(out, [x, unused, downstream])
    assert grad_x.tolist() == [4.0]
    assert grad_unused.tolist() == [0.0, 0.0, 0.0]
    assert grad_downstream.tolist() == [0.0]


def test_vector_target_requires_seed():
    graph = Graph()
    x = graph.create_leaf([0.1, 0.2])
    y = graph.create_node([x], ops.Exp())
    with pytest.raises(ValueError, match="seed"):
        graph.compute_gradients(y, [x])
    with pytest.raises(ValueError, match="Seed has length 3"):
        graph.compute_gradients(y, [x], seed=[1.0, 1.0, 1.0])

    (grad,) = graph.compute_gradients(y, [x], seed=[2.0, 0.0])
    assert_close(grad, [2.0 * math.exp(0.1), 0.0])


def test_repeated_calls_are_identical():
    graph = Graph()
    x = graph.create_leaf([0.5, -1.5])
    y = graph.create_leaf([2.0, 0.25])
    out = graph([graph([graph([x, y], ops.Multiply()), x], ops.Add())], ops.ReduceSum())
    before = x.value.clone()

    first = graph.compute_gradients(out, [x, y])
    second = graph.compute_gradients(out, [x, y])
    for a, b in zip(first, second):
        assert a.tolist() == b.tolist()
    assert x.value.tolist() == before.tolist()

    first[0].add_(100.0)
    assert graph.compute_gradients(out, [x])[0].tolist() == second[0].tolist()


def test_reused_operator_backs_the_newest_node():
    graph = Graph()
    x = graph.create_leaf([1.0])
    y = graph.create_leaf([2.0])
    op = ops.Exp()
    first = graph.create_node([x], op)
    (grad,) = graph.compute_gradients(first, [x])
    assert grad.item() == pytest.approx(math.exp(1.0))

    graph.create_node([y], op)
    (stale,) = graph.compute_gradients(first, [x])
    assert stale.item() == pytest.approx(math.exp(2.0))
    assert first.value.item() == pytest.approx(math.exp(1.0))


def test_leaf_target():
    graph = Graph()
    x = graph.create_leaf([7.0])
    assert [g.tolist() for g in graph.compute_gradients(x, [x])] == [[1.0]]


def test_hand_made_cycle_is_reported():
    graph = Graph()
    a = graph.create_leaf([0.5])
    b = graph.create_node([a], ops.Exp())
    c = graph.create_node([b], ops.Exp())
    graph.resolve(b).inputs = (c.index,)

    with pytest.raises(RuntimeError, match=f"Node {c.index} was scheduled twice"):
        graph.compute_gradients(c, [a])


def test_cycle_that_starves_the_queue_is_reported():
    graph = Graph()
    a = graph.create_leaf([0.5])
    b = graph.create_node([a], ops.Exp())
    c = graph.create_node([b], ops.Exp())
    d = graph.create_node([c], ops.Exp())
    # b feeds c, c feeds back into b: neither counter reaches zero
    graph.resolve(b).inputs = (c.index,)

    with pytest.raises(RuntimeError, match="reached 1 of 3 nodes"):
        graph.compute_gradients(d, [a])
