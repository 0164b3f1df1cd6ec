__all__ = [
    "config",
    "value",
    "node",
    "operator",
    "ops",
    "graph",
    "Graph",
    "NodeRef",
    "Operator",
    "__version__"
]

_EXPORTS = {
    "Graph": "graph",
    "NodeRef": "node",
    "Operator": "operator",
}

def __getattr__(name):
    if name in _EXPORTS:
        import importlib
        value = getattr(importlib.import_module(f".{_EXPORTS[name]}", __name__), name)
        globals()[name] = value
        return value
    if name in __all__:
        import importlib
        mod = importlib.import_module(f".{name}", __name__)
        globals()[name] = mod  # cache so future lookups are fast
        return mod
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

def __dir__():
    return sorted(list(globals().keys()) + __all__)

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from . import (
        config,
        value,
        node,
        operator,
        ops,
        graph
    )
    from .graph import Graph
    from .node import NodeRef
    from .operator import Operator
__version__ = "0.0.1"
