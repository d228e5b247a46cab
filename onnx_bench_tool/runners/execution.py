"""Warmup + measured execution loop.

States advance strictly ``CREATED -> WARMING_UP -> MEASURING -> DONE``.
Each measured iteration runs once with the coarse sampling profile and, when
per-operator reporting is requested, once more with the fine profile.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from ..errors import BenchError, ConfigError, RunError
from ._types import LoopStats
from .backends.base import Executor, Net
from .graph_def import DEFAULT_GRAPH_NAME, GraphDefinition
from .observers import ObserverConfig, PerfObserver, SamplingProfile, TimingSummary
from .workspace import TensorStore

LOGGER = logging.getLogger(__name__)


class LoopState(str, enum.Enum):
    CREATED = "created"
    WARMING_UP = "warming_up"
    MEASURING = "measuring"
    DONE = "done"


class ExecutionLoop:
    def __init__(self, executor: Executor, observer_config: Optional[ObserverConfig] = None) -> None:
        self.executor = executor
        self.observer_config = observer_config if observer_config is not None else ObserverConfig()
        self.state = LoopState.CREATED
        self.summary: Optional[TimingSummary] = None

    def _create_net(self, graph_def: GraphDefinition, store: TensorStore) -> Net:
        if not graph_def.has_name():
            graph_def.name = DEFAULT_GRAPH_NAME
        try:
            net = self.executor.create_net(graph_def, store)
        except BenchError:
            raise
        except Exception as e:
            raise RunError(f"Failed to create net '{graph_def.name}': {type(e).__name__}: {e}") from e
        if net is None:
            raise RunError(f"Failed to create net '{graph_def.name}'.")
        return net

    def _run_once(self, net: Net, observer: PerfObserver, what: str) -> None:
        state = self.observer_config.state
        observer.on_start()
        try:
            ok = net.run(per_operator=state.per_operator and not state.warmup)
        except Exception as e:
            raise RunError(f"{what} has failed: {type(e).__name__}: {e}") from e
        if not ok:
            raise RunError(f"{what} has failed.")
        observer.on_stop()

    def run(
        self,
        graph_def: GraphDefinition,
        store: TensorStore,
        *,
        warmup: int,
        iter: int,
        run_individual: bool = False,
    ) -> LoopStats:
        if self.state is not LoopState.CREATED:
            raise RunError(f"Execution loop already used (state={self.state.value}).")

        if warmup < 0:
            raise ConfigError(f"Number of warmup runs should be non negative, provided {warmup}.")
        net = self._create_net(graph_def, store)
        stats = LoopStats()
        sample_state = self.observer_config.state
        observer = self.observer_config.make_observer()

        try:
            LOGGER.info("Starting benchmark.")
            sample_state.init_baseline(run_individual, warmup)

            self.state = LoopState.WARMING_UP
            LOGGER.info("Running warmup runs.")
            for i in range(warmup):
                self._run_once(net, observer, f"Warmup run {i}")
                stats.warmup_runs += 1

            self.state = LoopState.MEASURING
            LOGGER.info("Main runs.")
            if iter < 0:
                raise ConfigError(f"Number of main runs should be non negative, provided {iter}.")
            for i in range(iter):
                sample_state.set_profile(SamplingProfile.COARSE)
                self._run_once(net, observer, f"Main run {i}")
                stats.measured_runs += 1
                if run_individual:
                    sample_state.set_profile(SamplingProfile.FINE)
                    self._run_once(net, observer, f"Main run {i} with operator")
                    stats.operator_runs += 1

            self.state = LoopState.DONE
            if run_individual:
                observer.add_operator_times(net.operator_times())
            self.summary = observer.summary
            self.observer_config.reporter.report(observer.summary)
            return stats
        finally:
            net.cleanup()
