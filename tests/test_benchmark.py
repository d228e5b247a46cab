from __future__ import annotations

import json

import numpy as np
import pytest

from conftest import CountingExecutor, make_tiny_model
from onnx_bench_tool.benchmark import run_benchmark
from onnx_bench_tool.cli import build_parser, main
from onnx_bench_tool.errors import CapabilityError, ConfigError
from onnx_bench_tool.runners import (
    BenchCfg,
    DeviceType,
    GraphDefinition,
    HostOnlyAccelerator,
    HostTensor,
    ObserverConfig,
    TensorStore,
)
from onnx_bench_tool.runners.observers import CollectingReporter


def _cfg(tmp_path, **kw) -> BenchCfg:
    base = dict(
        backend="builtin",
        input="data",
        input_dims="1,3,2,2",
        input_type="float",
        warmup=2,
        iter=3,
        output="*",
        output_folder=str(tmp_path / "out"),
    )
    base.update(kw)
    return BenchCfg(**base)


def test_example_scenario_with_counting_executor(tmp_path, no_accelerator):
    store = TensorStore()
    executor = CountingExecutor()
    result = run_benchmark(
        _cfg(tmp_path),
        graph_def=GraphDefinition(make_tiny_model()),
        store=store,
        executor=executor,
        accelerator=no_accelerator,
        observer_config=ObserverConfig(reporter=CollectingReporter()),
    )

    assert len(executor.net.calls) == 5
    assert result.status == "ok"
    assert result.runs == {"warmup": 2, "measured": 3, "operator": 0, "total": 5}
    assert result.device == DeviceType.CPU.value

    tensor = store.get_blob("data").tensor
    assert isinstance(tensor, HostTensor)
    assert tensor.numpy().shape == (1, 3, 2, 2)
    assert tensor.numpy().dtype == np.float32

    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["data"]
    assert len(result.outputs) == 1


def test_cuda_backend_without_accelerator_leaves_graph(tmp_path, no_accelerator):
    gd = GraphDefinition(make_tiny_model())
    with pytest.raises(CapabilityError):
        run_benchmark(
            _cfg(tmp_path, backend="cuda"),
            graph_def=gd,
            executor=CountingExecutor(),
            accelerator=no_accelerator,
        )
    assert all(op.device_type is DeviceType.CPU and op.engine is None for op in gd.ops)


def test_missing_net_is_config_error(tmp_path, no_accelerator):
    with pytest.raises(ConfigError, match="--net"):
        run_benchmark(_cfg(tmp_path), executor=CountingExecutor(), accelerator=no_accelerator)


def test_result_json_is_written(tmp_path, no_accelerator):
    out = tmp_path / "result.json"
    run_benchmark(
        _cfg(tmp_path, result_json=out, run_individual=True, output=""),
        graph_def=GraphDefinition(make_tiny_model()),
        executor=CountingExecutor(),
        accelerator=no_accelerator,
        observer_config=ObserverConfig(reporter=CollectingReporter()),
    )
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["runs"]["total"] == 2 + 2 * 3
    assert data["operator_ms"] == {"relu": 0.5}
    assert len(data["net_ms"]["measured_runs"]) == 3


def test_cli_args_to_cfg():
    args = build_parser().parse_args(["--net", "m.onnx", "--input", "data", "--input_file", "d.pb"])
    cfg = BenchCfg.from_args(args)
    assert cfg.input_type == ""
    assert cfg.iter == 10 and cfg.warmup == 0

    args = build_parser().parse_args(["--net", "m.onnx", "--input", "data", "--input_dims", "1,2"])
    assert BenchCfg.from_args(args).input_type == "float"


def test_cli_reports_unsupported_backend(tmp_path):
    onnx = pytest.importorskip("onnx")
    path = tmp_path / "tiny.onnx"
    onnx.save(make_tiny_model(), str(path))
    assert main(["--net", str(path), "--backend", "opencl"]) == 1


# ---------------------------- onnxruntime ----------------------------

def test_ort_end_to_end(tmp_path):
    pytest.importorskip("onnxruntime")
    onnx = pytest.importorskip("onnx")
    path = tmp_path / "tiny.onnx"
    onnx.save(make_tiny_model(), str(path))

    store = TensorStore()
    result = run_benchmark(
        _cfg(tmp_path, net=path, output="y", text_output=True, run_individual=True, iter=2),
        store=store,
        accelerator=HostOnlyAccelerator(),
        observer_config=ObserverConfig(reporter=CollectingReporter()),
    )

    assert result.runs == {"warmup": 2, "measured": 2, "operator": 2, "total": 6}
    y = store.get_blob("y").tensor.numpy()
    assert y.shape == (1, 3, 2, 2)
    lines = (tmp_path / "out" / "y.txt").read_text(encoding="utf-8").splitlines()
    assert lines == ["0"] * 12
    assert set(result.operator_ms) == {"matmul", "relu"}
    assert all(ms >= 0.0 for ms in result.operator_ms.values())


def test_ort_binary_output_feeds_next_run(tmp_path):
    pytest.importorskip("onnxruntime")
    onnx = pytest.importorskip("onnx")
    path = tmp_path / "tiny.onnx"
    onnx.save(make_tiny_model(), str(path))

    cfg = _cfg(tmp_path, net=path, warmup=0, iter=1, output="*")
    run_benchmark(cfg, accelerator=HostOnlyAccelerator(), observer_config=ObserverConfig(reporter=CollectingReporter()))
    out_dir = tmp_path / "out"
    assert sorted(p.name for p in out_dir.iterdir()) == ["data", "y"]

    store = TensorStore()
    run_benchmark(
        BenchCfg(net=path, input="data", input_file=str(out_dir / "data"), iter=1),
        store=store,
        accelerator=HostOnlyAccelerator(),
        observer_config=ObserverConfig(reporter=CollectingReporter()),
    )
    assert store.get_blob("data").tensor.numpy().shape == (1, 3, 2, 2)


def test_cli_main_runs(tmp_path):
    pytest.importorskip("onnxruntime")
    onnx = pytest.importorskip("onnx")
    path = tmp_path / "tiny.onnx"
    onnx.save(make_tiny_model(), str(path))
    rc = main([
        "--net", str(path),
        "--input", "data",
        "--input_dims", "1,3,2,2",
        "--warmup", "1",
        "--iter", "2",
        "--output", "y",
        "--output_folder", str(tmp_path / "o"),
        "--result_json", str(tmp_path / "r.json"),
    ])
    assert rc == 0
    assert (tmp_path / "o" / "y").is_file()
    assert json.loads((tmp_path / "r.json").read_text(encoding="utf-8"))["runs"]["total"] == 3


def test_failed_run_writes_failed_result(tmp_path, no_accelerator):
    out = tmp_path / "result.json"
    with pytest.raises(CapabilityError):
        run_benchmark(
            _cfg(tmp_path, backend="cuda", result_json=out),
            graph_def=GraphDefinition(make_tiny_model()),
            executor=CountingExecutor(),
            accelerator=no_accelerator,
        )
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["status"] == "failed"
    assert data["graph"] == "tiny"
    assert len(data["errors"]) == 1 and data["errors"][0].startswith("CapabilityError")
    assert data["runs"] == {}


def test_cli_session_options_to_cfg(tmp_path):
    args = build_parser().parse_args(
        ["--net", "m.onnx", "--intra_op_threads", "2", "--profile_dir", str(tmp_path / "prof")]
    )
    cfg = BenchCfg.from_args(args)
    assert cfg.intra_op_threads == 2
    assert cfg.profile_dir == tmp_path / "prof"


def test_ort_session_options_and_profile_dir(tmp_path):
    pytest.importorskip("onnxruntime")
    onnx = pytest.importorskip("onnx")
    from onnx_bench_tool.benchmark import _make_executor

    path = tmp_path / "tiny.onnx"
    onnx.save(make_tiny_model(), str(path))
    prof = tmp_path / "prof"
    cfg = _cfg(tmp_path, net=path, warmup=0, iter=1, run_individual=True, output="",
               intra_op_threads=1, profile_dir=prof)

    executor = _make_executor(cfg, HostOnlyAccelerator())
    assert executor.sess_options == {"intra_op_num_threads": 1}
    assert executor._session_options().intra_op_num_threads == 1

    result = run_benchmark(
        cfg,
        executor=executor,
        accelerator=HostOnlyAccelerator(),
        observer_config=ObserverConfig(reporter=CollectingReporter()),
    )
    assert result.runs["operator"] == 1
    assert list(prof.glob("tiny_ops*.json"))
