# benchmark.py
"""
Threaded benchmark harness.

A benchmark run builds a fresh ensemble, advances it for a fixed number
of ticks and reports the elapsed time together with the number of valid
end states. Discrete and ODE ensembles are split into contiguous chunks
that are advanced by independent executors on a thread pool; particle
ensembles need the whole ensemble at every force barrier and always run
in one piece.
"""
import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from particle import ParticleSystem
from samples import SampleEnsemble

# --- Data Contracts ---
#
# class BenchmarkSchema:
#   - num_samples: int, num_executions: int (ticks per run)
#   - distributions: one per state component
#   - executor_factory: Callable[[], executor], called once per chunk so
#     that no executor (and no solver RNG) is shared between threads
#   - particles: bool
#
# run_benchmark(schema, iterations, warmups=0, workers=1, seed=None) -> BenchmarkResult
#   - Outputs: warmups + iterations runs; warm-up runs come first.


@dataclass
class BenchmarkSchema:
    num_samples: int
    num_executions: int
    distributions: Sequence
    executor_factory: Callable[[], object]
    particles: bool = False


@dataclass
class BenchmarkRun:
    runtime: float  # seconds
    num_valid_end_states: int

    @property
    def runtime_millis(self) -> int:
        return int(self.runtime * 1000)


@dataclass
class BenchmarkResult:
    num_warmups: int
    runs: List[BenchmarkRun] = field(default_factory=list)

    @property
    def measured_runs(self) -> List[BenchmarkRun]:
        return self.runs[self.num_warmups:]

    def mean_runtime(self) -> float:
        runs = self.measured_runs
        return float(np.mean([run.runtime for run in runs])) if runs else 0.0


def _advance_chunk(executor, ensemble, num_executions: int):
    executor.seed(ensemble)
    executor.advance(ensemble, num_executions)
    return ensemble


def _benchmark_run(schema: BenchmarkSchema, workers: int, rng: np.random.Generator) -> BenchmarkRun:
    begin = time.perf_counter()
    if schema.particles:
        ensemble = ParticleSystem.from_distributions(schema.num_samples, schema.distributions, rng)
        _advance_chunk(schema.executor_factory(), ensemble, schema.num_executions)
    else:
        ensemble = SampleEnsemble.from_distributions(schema.num_samples, schema.distributions, rng)
        chunks = ensemble.split(workers)
        if len(chunks) <= 1:
            for chunk in chunks:
                _advance_chunk(schema.executor_factory(), chunk, schema.num_executions)
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=len(chunks)) as pool:
                futures = [
                    pool.submit(_advance_chunk, schema.executor_factory(), chunk, schema.num_executions)
                    for chunk in chunks
                ]
                chunks = [future.result() for future in futures]
        if chunks:
            ensemble = SampleEnsemble.concatenate(chunks)
    elapsed = time.perf_counter() - begin
    return BenchmarkRun(runtime=elapsed, num_valid_end_states=ensemble.live_count())


def run_benchmark(
    schema: BenchmarkSchema,
    iterations: int,
    warmups: int = 0,
    workers: int = 1,
    seed: Optional[int] = None,
) -> BenchmarkResult:
    """
    Runs warmups + iterations independent benchmark runs.

    Args:
        schema (BenchmarkSchema): What to run.
        iterations (int): Number of measured runs.
        warmups (int): Number of leading runs excluded from the statistics.
        workers (int): Number of threads for sample-parallel ensembles.
        seed (Optional[int]): Seed for the initial data.
    """
    rng = np.random.default_rng(seed)
    result = BenchmarkResult(num_warmups=warmups)
    for n in range(warmups + iterations):
        run = _benchmark_run(schema, max(1, workers), rng)
        result.runs.append(run)
        logging.debug(
            f"Benchmark run {n + 1}/{warmups + iterations}: {run.runtime_millis} ms, "
            f"{run.num_valid_end_states} valid end states."
        )
    logging.info(
        f"Benchmark finished: mean runtime {result.mean_runtime() * 1000:.2f} ms "
        f"over {iterations} runs ({warmups} warm-ups)."
    )
    return result
