import logging
import math
from enum import Enum
from typing import Sequence, Tuple
import numpy as np
from scipy import linalg
from .components import Element, ElementKind
from .state_space_model import StateSpaceSystem


class CircuitType(str, Enum):
    RLC = "RLC"
    RC = "RC"
    RL = "RL"
    LC = "LC"
    C = "C"
    L = "L"
    RESISTIVE = "resistive"


DEFAULT_SIMULATION_TIME = 0.01
DEFAULT_TIME_STEP = 1e-4


def classify_circuit(elements: Sequence[Element]) -> CircuitType:
    """Classify a circuit by the kinds of passive elements it contains."""
    kinds = {e.kind for e in elements}
    has_r = ElementKind.RESISTOR in kinds
    has_c = ElementKind.CAPACITOR in kinds
    has_l = ElementKind.INDUCTOR in kinds

    if has_r and has_c and has_l:
        return CircuitType.RLC
    if has_c and has_l:
        return CircuitType.LC
    if has_r and has_c:
        return CircuitType.RC
    if has_r and has_l:
        return CircuitType.RL
    if has_c:
        return CircuitType.C
    if has_l:
        return CircuitType.L
    return CircuitType.RESISTIVE


def _first_value(elements: Sequence[Element], kind: ElementKind) -> float:
    return next(e.value for e in elements if e.kind is kind)


def recommend_simulation_parameters(elements: Sequence[Element]) -> Tuple[float, float]:
    """
    Suggest a simulation time and step from the circuit's time constants.

    Oscillating circuits use the period T = 2*pi*sqrt(L*C) of the first
    inductor and capacitor; first-order circuits use tau from the smallest
    resistance.

    Args:
        elements: Circuit elements

    Returns:
        (simulation_time, time_step) in seconds
    """
    circuit_type = classify_circuit(elements)
    resistances = [e.value for e in elements if e.kind is ElementKind.RESISTOR]

    if circuit_type in (CircuitType.RLC, CircuitType.LC):
        period = 2 * math.pi * math.sqrt(_first_value(elements, ElementKind.INDUCTOR) *
                                         _first_value(elements, ElementKind.CAPACITOR))
        if circuit_type is CircuitType.RLC:
            params = (5 * period, period / 100)
        else:
            params = (3 * period, period / 200)
    elif circuit_type is CircuitType.RC:
        tau = _first_value(elements, ElementKind.CAPACITOR) * min(resistances)
        params = (5 * tau, tau / 100)
    elif circuit_type is CircuitType.RL:
        tau = _first_value(elements, ElementKind.INDUCTOR) / min(resistances)
        params = (5 * tau, tau / 100)
    else:
        params = (DEFAULT_SIMULATION_TIME, DEFAULT_TIME_STEP)

    logging.info(f"{circuit_type.value} circuit: recommended time {params[0]:.3e} s, step {params[1]:.3e} s")
    return params


def spectral_radius_estimate(A: np.ndarray) -> float:
    """Upper bound of the spectral radius: the largest absolute row sum of A."""
    A = np.asarray(A, dtype=float)
    if A.size == 0:
        return 0.0
    return float(np.abs(A).sum(axis=1).max())


def natural_frequencies(system: StateSpaceSystem) -> np.ndarray:
    """Eigenvalues of the system matrix A."""
    if system.n_states == 0:
        return np.zeros(0, dtype=complex)
    return linalg.eigvals(system.A)


def is_stable(system: StateSpaceSystem, tolerance: float = 1e-12) -> bool:
    """True when no eigenvalue of A has a positive real part."""
    return bool(np.all(natural_frequencies(system).real <= tolerance))
