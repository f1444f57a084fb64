import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import numpy as np
from .analysis import spectral_radius_estimate
from .engine_settings import EngineSettings
from .state_space_model import StateSpaceSystem

# Relative slack so that e.g. 0.005 / 1e-5 counts as 500 steps, not 499.
STEP_COUNT_TOLERANCE = 1e-9


class NumericalInstabilityError(Exception):
    """Raised when the integrated state stops being finite."""
    pass


class SimulationCancelledError(Exception):
    """Raised when a simulation was cancelled before completion."""
    pass


class SimulationStatus(str, Enum):
    COMPLETED = "completed"
    UNSTABLE = "unstable"
    CANCELLED = "cancelled"


class CancellationToken:
    """Thread-safe flag checked by the integrator between steps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _read_only(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class SimulationTrace:
    """
    Sampled solution of a simulation.

    Attributes:
        time: Sample times, shape (k+1,)
        states: State vectors, shape (k+1, n)
        outputs: Output vectors, shape (k+1, p)
        status: How the integration ended
        step_size: Step actually used
        requested_steps: Steps the full run would have taken
        message: Reason for an early stop
    """
    time: np.ndarray
    states: np.ndarray
    outputs: np.ndarray
    status: SimulationStatus
    step_size: float
    requested_steps: int
    message: str = ""

    def __post_init__(self):
        for name in ("time", "states", "outputs"):
            object.__setattr__(self, name, _read_only(getattr(self, name)))

    @property
    def steps(self) -> int:
        """Number of steps actually taken."""
        return len(self.time) - 1

    @property
    def success(self) -> bool:
        return self.status is SimulationStatus.COMPLETED

    def raise_for_status(self) -> "SimulationTrace":
        if self.status is SimulationStatus.UNSTABLE:
            raise NumericalInstabilityError(self.message)
        if self.status is SimulationStatus.CANCELLED:
            raise SimulationCancelledError(self.message)
        return self


class Integrator:
    """Forward Euler integration with a stability-aware step limit."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def stable_step(self, A: np.ndarray, requested_step: float, estimate: Optional[float] = None) -> float:
        """1 / spectral radius estimate, or the requested step when A has no dynamics."""
        if estimate is None:
            estimate = spectral_radius_estimate(A)
        if estimate == 0:
            return requested_step
        return 1.0 / estimate

    def select_step(self, A: np.ndarray, requested_step: float) -> float:
        """Effective step: the requested step capped by a fraction of the stable step.

        A system without dynamics keeps the requested step.
        """
        if not self.settings.auto_step:
            return requested_step
        estimate = spectral_radius_estimate(A)
        if estimate == 0:
            return requested_step
        stable = self.stable_step(A, requested_step, estimate)
        step = min(requested_step, self.settings.stability_factor * stable)
        if step < requested_step:
            logging.info(f"Time step reduced from {requested_step:.3e} s to {step:.3e} s for stability")
        return step

    def integrate(self, system: StateSpaceSystem, total_time: float, requested_step: float,
                  cancel_token: Optional[CancellationToken] = None) -> SimulationTrace:
        """
        Integrate the system from x0 over total_time.

        Args:
            system: The state-space system
            total_time: Simulated time in seconds
            requested_step: Desired step in seconds
            cancel_token: Optional token to stop the run between steps

        Returns:
            SimulationTrace: samples up to the last finite state
        """
        if total_time < 0:
            raise ValueError(f"total_time must be non-negative, got {total_time}")
        if requested_step <= 0:
            raise ValueError(f"requested_step must be positive, got {requested_step}")

        step = self.select_step(system.A, requested_step)
        steps = int(np.floor(total_time / step * (1 + STEP_COUNT_TOLERANCE)))
        logging.info(f"Integrating {steps} steps of {step:.3e} s")

        # inputs are constant, so their contributions are computed once
        forcing = system.B @ system.u
        feedthrough = system.D @ system.u

        time = np.arange(steps + 1) * step
        states = np.zeros((steps + 1, system.n_states))
        outputs = np.zeros((steps + 1, system.n_outputs))
        states[0] = system.x0
        outputs[0] = system.C @ system.x0 + feedthrough

        status = SimulationStatus.COMPLETED
        message = ""
        last = steps
        with np.errstate(over="ignore", invalid="ignore"):
            for k in range(steps):
                if cancel_token is not None and cancel_token.cancelled:
                    status = SimulationStatus.CANCELLED
                    message = f"Simulation cancelled at t={time[k]:.6e} s after {k} steps"
                    logging.info(message)
                    last = k
                    break
                x_next = states[k] + step * (system.A @ states[k] + forcing)
                if not np.all(np.isfinite(x_next)):
                    status = SimulationStatus.UNSTABLE
                    message = (f"State became non-finite at t={time[k + 1]:.6e} s (step {k + 1}); "
                               f"step {step:.3e} s is too large")
                    logging.error(message)
                    last = k
                    break
                y_next = system.C @ x_next + feedthrough
                if not np.all(np.isfinite(y_next)):
                    status = SimulationStatus.UNSTABLE
                    message = f"Output became non-finite at t={time[k + 1]:.6e} s (step {k + 1})"
                    logging.error(message)
                    last = k
                    break
                states[k + 1] = x_next
                outputs[k + 1] = y_next

        return SimulationTrace(
            time=time[:last + 1],
            states=states[:last + 1],
            outputs=outputs[:last + 1],
            status=status,
            step_size=step,
            requested_steps=steps,
            message=message,
        )
