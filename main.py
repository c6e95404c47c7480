# main.py
"""
Command-line entry point: `python main.py [config.json]`.

A run goes through these phases:
1. Read the JSON configuration and install logging.
2. Build the ensemble and its executors from "simulation_parameters"; a list
   of "function_parameters" sweeps one ensemble over every parameter set.
3. Advance the ensemble for "run_control.max_steps" steps under cProfile,
   reinitializing dead samples every "reinit_every" steps if requested.
4. Run the threaded benchmark if "benchmark.enabled" is set.
5. Log the profile of the tick loop.
"""
import logging
import sys
from utils import setup_logging, load_config, get_section
import cProfile
import pstats
import io


def run_ticks(controller, run_params):
    """
    Drives the controller through the tick loop. Returns the number of steps run.
    """
    log_throttle = run_params.get('log_throttle_steps', 100)
    max_steps = run_params.get('max_steps', 1000)
    ticks_per_step = run_params.get('ticks_per_step', 1)
    reinit_every = run_params.get('reinit_every', 0)

    step_num = 0
    while step_num < max_steps:
        controller.execute(ticks_per_step)
        step_num += 1

        # Hot loops must throttle logs
        if step_num % log_throttle == 0:
            logging.info(
                f"Step {step_num}/{max_steps} | "
                f"valid samples per executor: {controller.live_counts()} "
                f"of {len(controller.initial_data)}"
            )

        if reinit_every and step_num % reinit_every == 0:
            refilled = sum(len(indices) for indices in controller.reinit_states())
            if refilled > 0:
                logging.debug(f"Step {step_num} | reinitialized {refilled} samples")
        elif controller.live_count() == 0:
            logging.info(f"No valid samples left after step {step_num}. Stopping.")
            break
    return step_num


def run_benchmark_from_config(sim_params, bench_params):
    """
    Benchmarks every entry of a parameter sweep. Returns one result per entry.
    """
    from benchmark import BenchmarkSchema, run_benchmark
    from controller import executor_from_config, sweep_configs
    from distributions import distributions_from_config

    results = []
    for entry in sweep_configs(sim_params):
        schema = BenchmarkSchema(
            num_samples=sim_params['num_samples'],
            num_executions=bench_params.get('num_executions', 1000),
            distributions=distributions_from_config(entry['distributions']),
            executor_factory=lambda entry=entry: executor_from_config(entry),
            particles=entry.get('mode') == 'particle',
        )
        result = run_benchmark(
            schema,
            iterations=bench_params.get('iterations', 5),
            warmups=bench_params.get('warmups', 1),
            workers=bench_params.get('workers', 4),
            seed=sim_params.get('seed'),
        )
        for n, run in enumerate(result.measured_runs):
            logging.info(
                f"Run {n + 1}: {run.runtime_millis} ms, "
                f"{run.num_valid_end_states} valid end states"
            )
        results.append(result)
    return results


def main(config_path='config.json'):
    # Logging is not set up yet, so a load failure can only be printed.
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return

    setup_logging(config)
    logging.info("--- Chaotic Ensemble Run Starting ---")

    sim_params = get_section(config, 'simulation_parameters')
    bench_params = get_section(config, 'benchmark')

    from controller import ExecutionController

    controller = ExecutionController.from_config(sim_params)

    profiler = cProfile.Profile()
    profiler.enable()
    steps = run_ticks(controller, get_section(config, 'run_control'))
    profiler.disable()

    logging.info(f"Ran {steps} steps; valid end states per executor: {controller.live_counts()}.")

    if bench_params.get('enabled', False):
        logging.info("--- Benchmark ---")
        run_benchmark_from_config(sim_params, bench_params)

    logging.info("--- Tick Loop Profile ---")
    s = io.StringIO()
    # Sort by cumulative time spent in the function
    pstats.Stats(profiler, stream=s).sort_stats('cumtime').print_stats(20)
    logging.info(f"\n{s.getvalue()}")

    logging.info("--- Chaotic Ensemble Run Shutting Down ---")


if __name__ == "__main__":
    main(*sys.argv[1:2])
