from __future__ import annotations

from typing import Protocol

from ..graph_def import GraphDefinition
from ..workspace import TensorStore


class Net(Protocol):
    """A runnable graph bound to a TensorStore.

    ``run`` executes the graph once, reading inputs from and writing outputs
    to the store. It returns False (or raises) on failure.
    """

    name: str

    def run(self, per_operator: bool = False) -> bool: ...

    def operator_times(self) -> dict[str, list[float]]: ...

    def cleanup(self) -> None: ...


class Executor(Protocol):
    """Execution engine contract: turn a graph definition into a Net."""

    name: str

    def create_net(self, graph_def: GraphDefinition, store: TensorStore) -> Net: ...
