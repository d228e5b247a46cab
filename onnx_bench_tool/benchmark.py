"""End-to-end benchmark driver.

Order of operations:
    load graph -> configure backend -> materialize inputs -> run loop
    -> write outputs -> (optional) write result JSON
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from .errors import BenchError, ConfigError
from .runners._types import BenchCfg, BenchmarkResult, DeviceType
from .runners.accelerator import Accelerator, OrtCudaAccelerator
from .runners.artifacts import write_json
from .runners.backend_config import BackendConfigurer
from .runners.backends.base import Executor
from .runners.execution import ExecutionLoop
from .runners.graph_def import GraphDefinition
from .runners.inputs import InputMaterializer
from .runners.observers import ObserverConfig
from .runners.outputs import OutputWriter
from .runners.workspace import TensorStore

LOGGER = logging.getLogger(__name__)


def _make_executor(cfg: BenchCfg, accelerator: Accelerator) -> Executor:
    from .runners.backends.ort_backend import OrtExecutor

    sess_options: dict[str, Any] = {}
    if cfg.intra_op_threads > 0:
        sess_options["intra_op_num_threads"] = int(cfg.intra_op_threads)
    return OrtExecutor(accelerator=accelerator, sess_options=sess_options, profile_dir=cfg.profile_dir)


def run_benchmark(
    cfg: BenchCfg,
    *,
    graph_def: Optional[GraphDefinition] = None,
    store: Optional[TensorStore] = None,
    executor: Optional[Executor] = None,
    accelerator: Optional[Accelerator] = None,
    observer_config: Optional[ObserverConfig] = None,
) -> BenchmarkResult:
    """Run one benchmark invocation described by ``cfg``.

    ``graph_def`` overrides ``cfg.net``; ``executor`` defaults to the
    onnxruntime executor. Harness errors propagate to the caller; when
    ``cfg.result_json`` is set, a ``failed`` result is written first.
    """

    result = BenchmarkResult(backend=cfg.backend)
    try:
        _run(cfg, result, graph_def, store, executor, accelerator, observer_config)
        result.status = "ok"
    except BenchError as e:
        result.status = "failed"
        result.errors.append(f"{type(e).__name__}: {e}")
        raise
    finally:
        if cfg.result_json is not None:
            write_json(cfg.result_json, result.to_dict())
            LOGGER.info("Wrote result summary to %s", cfg.result_json)
    return result


def _run(
    cfg: BenchCfg,
    result: BenchmarkResult,
    graph_def: Optional[GraphDefinition],
    store: Optional[TensorStore],
    executor: Optional[Executor],
    accelerator: Optional[Accelerator],
    observer_config: Optional[ObserverConfig],
) -> None:
    accelerator = accelerator or OrtCudaAccelerator()
    if graph_def is None:
        if cfg.net is None:
            raise ConfigError("No graph definition given (--net).")
        graph_def = GraphDefinition.from_file(cfg.net)
    result.graph = graph_def.name
    if executor is None:
        executor = _make_executor(cfg, accelerator)
    store = store if store is not None else TensorStore()
    observer_config = observer_config if observer_config is not None else ObserverConfig()

    target = BackendConfigurer(accelerator).apply(graph_def, cfg.backend)
    result.device = target.device_type.value

    InputMaterializer(accelerator, run_on_gpu=target.device_type is DeviceType.CUDA).materialize(
        store,
        cfg.input,
        cfg.input_file,
        cfg.input_dims,
        cfg.input_type,
    )

    if cfg.sleep_before_run > 0:
        LOGGER.info("Sleeping %.1fs before run.", cfg.sleep_before_run)
        time.sleep(cfg.sleep_before_run)

    loop = ExecutionLoop(executor, observer_config)
    stats = loop.run(
        graph_def,
        store,
        warmup=cfg.warmup,
        iter=cfg.iter,
        run_individual=cfg.run_individual,
    )
    result.graph = graph_def.name
    result.runs = {
        "warmup": stats.warmup_runs,
        "measured": stats.measured_runs,
        "operator": stats.operator_runs,
        "total": stats.total_runs,
    }
    if loop.summary is not None:
        result.net_ms = loop.summary.net_stats()
        result.operator_ms = loop.summary.operator_means()

    written = OutputWriter(accelerator).write(
        store,
        cfg.output,
        output_folder=cfg.output_folder,
        text_output=cfg.text_output,
    )
    result.outputs = [str(p) for p in written]
