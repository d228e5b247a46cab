from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np
import pytest

from onnx_bench_tool.runners.observers import SampleRateState


class FakeDeviceBuffer:
    """Stand-in for an OrtValue living on an accelerator."""

    def __init__(self, arr: np.ndarray) -> None:
        self._arr = arr

    def shape(self) -> list[int]:
        return list(self._arr.shape)

    def data_type(self) -> str:
        return {"float32": "tensor(float)", "uint8": "tensor(uint8)"}[str(self._arr.dtype)]

    def numpy(self) -> np.ndarray:
        return self._arr.copy()


class FakeAccelerator:
    name = "fake"

    def __init__(self, compiled: bool = True, present: bool = True) -> None:
        self.compiled = compiled
        self.present = present
        self.allocations: list[tuple[tuple[int, ...], np.dtype]] = []

    def compiled_with_accelerator(self) -> bool:
        return self.compiled

    def has_accelerator(self) -> bool:
        return self.compiled and self.present

    def allocate(self, shape: Sequence[int], dtype: np.dtype) -> Any:
        self.allocations.append((tuple(shape), np.dtype(dtype)))
        return FakeDeviceBuffer(np.zeros(tuple(shape), dtype=dtype))

    def to_host(self, buffer: Any) -> np.ndarray:
        return buffer.numpy()


class CountingNet:
    def __init__(self, name: str, state: Optional[SampleRateState], fail_at: Optional[int] = None,
                 fail_per_operator: bool = False) -> None:
        self.name = name
        self.state = state
        self.fail_at = fail_at
        self.fail_per_operator = fail_per_operator
        self.calls: list[bool] = []
        self.snapshots: list[tuple[bool, bool, int]] = []
        self.cleaned = False

    def run(self, per_operator: bool = False) -> bool:
        idx = len(self.calls)
        self.calls.append(per_operator)
        if self.state is not None:
            self.snapshots.append((self.state.warmup, self.state.per_operator, self.state.measured_runs))
        if self.fail_at is not None and idx == self.fail_at:
            return False
        if self.fail_per_operator and per_operator:
            raise RuntimeError("kernel crashed")
        return True

    def operator_times(self) -> dict[str, list[float]]:
        return {"relu": [0.5 for c in self.calls if c]}

    def cleanup(self) -> None:
        self.cleaned = True


class CountingExecutor:
    name = "counting"

    def __init__(self, state: Optional[SampleRateState] = None, **net_kwargs: Any) -> None:
        self.state = state
        self.net_kwargs = net_kwargs
        self.nets: list[CountingNet] = []

    def create_net(self, graph_def, store) -> CountingNet:
        net = CountingNet(graph_def.name, self.state, **self.net_kwargs)
        self.nets.append(net)
        return net

    @property
    def net(self) -> CountingNet:
        return self.nets[-1]


def make_tiny_model(name: str = "tiny"):
    """data -> Relu -> y, plus a MatMul with an initializer."""

    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper

    x = helper.make_tensor_value_info("data", TensorProto.FLOAT, [1, 3, 2, 2])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [1, 3, 2, 2])
    w = helper.make_tensor("W", TensorProto.FLOAT, [2, 2], [1.0, 0.0, 0.0, 1.0])

    mm = helper.make_node("MatMul", ["data", "W"], ["mm_out"], name="matmul")
    relu = helper.make_node("Relu", ["mm_out"], ["y"], name="relu")

    graph = helper.make_graph([mm, relu], name, [x], [y], initializer=[w])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    onnx.checker.check_model(model)
    return model


@pytest.fixture
def fake_accelerator() -> FakeAccelerator:
    return FakeAccelerator()


@pytest.fixture
def no_accelerator() -> FakeAccelerator:
    return FakeAccelerator(compiled=False, present=False)
