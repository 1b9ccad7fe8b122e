# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "orbitax"]
#
# [tool.uv.sources]
# orbitax = { path = ".." }
# ///
"""Batch least-squares orbit determination from simulated tracking data.

Propagates a reference LEO orbit, simulates noisy measurements of the chosen
type (GNSS position/velocity fixes, or range / range-rate from a ground
station network), perturbs the initial state and recovers it with the
batch least-squares estimator.

Requires orbitax to be installed (``uv pip install -e .`` from the repo root).

Usage:
    uv run examples/orbit_determination.py [OPTIONS]

Examples:
    # Position/velocity fixes every 5 minutes over 3 hours
    uv run examples/orbit_determination.py --measurement pv

    # Range from three stations, estimating the drag coefficient too
    uv run examples/orbit_determination.py --measurement range --drag --estimate-cd

    # Noiseless range-rate, Gauss-Newton solver
    uv run examples/orbit_determination.py --measurement range-rate --no-noise --optimizer gn
"""

import enum
import logging
import time
from typing import Annotated

import jax.numpy as jnp
import numpy as np
import typer

from orbitax import set_dtype
from orbitax.constants import GM_EARTH, R_EARTH
from orbitax.coordinates import OrbitType, PositionAngle
from orbitax.epoch import Epoch
from orbitax.errors import EstimationConvergenceError
from orbitax.estimation import BatchLSEstimator, GaussNewton, LevenbergMarquardt, PropagatorBuilder
from orbitax.integrators import AdaptiveConfig
from orbitax.orbit_dynamics import ForceModelConfig, create_orbit_dynamics
from orbitax.orbit_measurements import (
    GroundStation,
    PVBuilder,
    RangeBuilder,
    RangeRateBuilder,
    generate_measurements,
)
from orbitax.propagation import NumericalPropagator, SpacecraftState

set_dtype(jnp.float64)

STATIONS = (
    GroundStation.from_degrees("kiruna", 20.96, 67.86, 400.0),
    GroundStation.from_degrees("svalbard", 15.41, 78.23, 500.0),
    GroundStation.from_degrees("santiago", -70.67, -33.15, 700.0),
)


class MeasurementType(enum.StrEnum):
    pv = "pv"
    range = "range"
    range_rate = "range-rate"


class Optimizer(enum.StrEnum):
    lm = "lm"
    gn = "gn"


def main(
    measurement: Annotated[
        MeasurementType, typer.Option(help="Simulated measurement type")
    ] = MeasurementType.pv,
    duration: Annotated[float, typer.Option(help="Tracking span in hours")] = 3.0,
    step: Annotated[float, typer.Option(help="Measurement spacing in seconds")] = 300.0,
    noise: Annotated[bool, typer.Option(help="Add Gaussian noise to the measurements")] = True,
    offset: Annotated[float, typer.Option(help="Initial guess position error in metres")] = 1000.0,
    drag: Annotated[bool, typer.Option(help="Enable exponential atmospheric drag")] = False,
    estimate_cd: Annotated[bool, typer.Option(help="Estimate the drag coefficient")] = False,
    optimizer: Annotated[Optimizer, typer.Option(help="Normal-equation solver")] = Optimizer.lm,
    workers: Annotated[int, typer.Option(help="Threads propagating arcs")] = 1,
    seed: Annotated[int, typer.Option(help="Noise generator seed")] = 42,
    verbose: Annotated[bool, typer.Option(help="Log estimator progress")] = False,
):
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    if estimate_cd and not drag:
        raise typer.BadParameter("--estimate-cd requires --drag")

    # ── Stage 1: Reference trajectory ────────────────────────────────────────
    epoch = Epoch(2024, 3, 20, 12, 0, 0.0)
    a = R_EARTH + 500e3
    truth = SpacecraftState.from_elements(
        epoch,
        [a, 0.001, 97.4 * jnp.pi / 180.0, 0.3, 0.5, 0.0],
        OrbitType.KEPLERIAN,
        PositionAngle.TRUE,
        GM_EARTH,
    )
    config = ForceModelConfig(j2=True, drag=drag)
    dynamics = create_orbit_dynamics(epoch, config)
    integrator = AdaptiveConfig(abs_tol=1e-9, rel_tol=1e-12)
    print(f"Reference orbit: a = {a / 1e3:.1f} km, force model {dynamics.parameter_names}")

    # ── Stage 2: Simulated measurements ──────────────────────────────────────
    rng = np.random.default_rng(seed) if noise else None
    end = epoch + duration * 3600.0
    t0 = time.perf_counter()
    measurements = []
    match measurement:
        case MeasurementType.pv:
            builder = PVBuilder(5.0, 5e-3, rng=rng)
            propagator = NumericalPropagator(truth, dynamics, integrator=integrator)
            measurements = generate_measurements([propagator], builder, epoch, end, step)
        case MeasurementType.range | MeasurementType.range_rate:
            cls = RangeBuilder if measurement is MeasurementType.range else RangeRateBuilder
            sigma = 10.0 if measurement is MeasurementType.range else 0.01
            for station in STATIONS:
                propagator = NumericalPropagator(truth, dynamics, integrator=integrator)
                builder = cls(station, sigma, min_elevation=5.0 * jnp.pi / 180.0, rng=rng)
                measurements.extend(generate_measurements([propagator], builder, epoch, end, step))
    print(f"Simulated {len(measurements)} {measurement.value} measurements "
          f"in {time.perf_counter() - t0:.1f}s")
    if not measurements:
        print("ERROR: No visible measurements. Exiting.")
        raise typer.Exit(1)

    # ── Stage 3: Perturbed initial guess ─────────────────────────────────────
    x_true = np.asarray(truth.cartesian)
    direction = np.random.default_rng(seed + 1).normal(size=3)
    x_guess = x_true.copy()
    x_guess[:3] += offset * direction / np.linalg.norm(direction)
    guess = SpacecraftState.from_cartesian(epoch, x_guess, GM_EARTH)

    prop_builder = PropagatorBuilder(
        guess,
        dynamics,
        OrbitType.EQUINOCTIAL,
        PositionAngle.TRUE,
        position_scale=10.0,
        integrator=integrator,
        estimated_parameters=("cd",) if estimate_cd else (),
    )
    if estimate_cd:
        prop_builder.set_driver(prop_builder.parameters["cd"].with_value(2.0))

    # ── Stage 4: Estimation ──────────────────────────────────────────────────
    solver = LevenbergMarquardt() if optimizer is Optimizer.lm else GaussNewton()
    estimator = BatchLSEstimator([prop_builder], solver)
    for m in measurements:
        estimator.add_measurement(m)
    estimator.set_convergence_threshold(1e-10, 1e-4)
    estimator.set_max_iterations(15)
    estimator.set_max_evaluations(40)
    estimator.set_parallelism(workers)

    t0 = time.perf_counter()
    try:
        result = estimator.estimate()
    except EstimationConvergenceError as exc:
        print(f"Estimation did not converge: {exc}")
        result = exc.result
    print(f"Estimation took {time.perf_counter() - t0:.1f}s: "
          f"{result.iterations} iterations, {result.evaluations} evaluations, "
          f"rms = {result.rms:.4f}, converged = {result.converged}")

    # ── Stage 5: Report ──────────────────────────────────────────────────────
    x_est = np.asarray(prop_builder.initial_state().cartesian)
    dp = np.linalg.norm(x_est[:3] - x_true[:3])
    dv = np.linalg.norm(x_est[3:] - x_true[3:])
    print(f"Initial position error: {offset:.1f} m -> {dp:.3f} m")
    print(f"Initial velocity error: {dv * 1e3:.3f} mm/s")

    sigmas = result.standard_deviations
    for i, driver in enumerate(result.parameters.selected):
        sigma = f" +/- {sigmas[i]:.3g}" if sigmas is not None else ""
        print(f"  {driver.name:>8s} = {driver.value:.10g}{sigma}")

    print("\nDone.")


if __name__ == "__main__":
    typer.run(main)
