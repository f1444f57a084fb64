"""
Human readable views of the pipeline stages.

Kirchhoff and state equations are built as sympy expressions; graphs,
matrices and traces are rendered as plain-text tables.
"""

import logging
from typing import List
import numpy as np
import sympy as sp
from sympy.abc import t
from .electrical_graph import ElectricalGraph
from .integrator import SimulationTrace
from .loop_matrix import LoopMatrix
from .state_space_model import StateSpaceSystem


def kvl_equations(loop_matrix: LoopMatrix) -> List[sp.Eq]:
    """One KVL equation per chord: the chord voltage in terms of tree voltages."""
    equations = []
    for i, chord in enumerate(loop_matrix.chords):
        rhs = -sum((int(loop_matrix[i, j]) * branch.voltage_var
                    for j, branch in enumerate(loop_matrix.tree) if loop_matrix[i, j] != 0), sp.S.Zero)
        equations.append(sp.Eq(chord.voltage_var, rhs))
    return equations


def kcl_equations(loop_matrix: LoopMatrix) -> List[sp.Eq]:
    """One KCL equation per tree branch: the branch current in terms of chord currents."""
    equations = []
    for j, branch in enumerate(loop_matrix.tree):
        rhs = sum((int(loop_matrix[i, j]) * chord.current_var
                   for i, chord in enumerate(loop_matrix.chords) if loop_matrix[i, j] != 0), sp.S.Zero)
        equations.append(sp.Eq(branch.current_var, rhs))
    return equations


def state_equations(system: StateSpaceSystem) -> List[sp.Eq]:
    """The rows of dx/dt = A x + B u as sympy equations."""
    x = sp.Matrix([e.state_var for e in system.state_elements])
    u = sp.Matrix([e.input_var for e in system.input_elements])
    rhs = sp.zeros(system.n_states, 1)
    if system.n_states:
        rhs += sp.Matrix(system.A.tolist()) * x
    if system.n_states and system.n_inputs:
        rhs += sp.Matrix(system.B.tolist()) * u
    return [sp.Eq(sp.Derivative(x[i], t), rhs[i]) for i in range(system.n_states)]


def output_equations(system: StateSpaceSystem) -> List[sp.Eq]:
    """The rows of y = C x + D u as sympy equations."""
    x = sp.Matrix([e.state_var for e in system.state_elements])
    u = sp.Matrix([e.input_var for e in system.input_elements])
    equations = []
    for k, name in enumerate(system.output_names):
        rhs = sum((sp.Float(c) * x[i] for i, c in enumerate(system.C[k]) if c != 0), sp.S.Zero)
        rhs += sum((sp.Float(d) * u[i] for i, d in enumerate(system.D[k]) if d != 0), sp.S.Zero)
        equations.append(sp.Eq(sp.Symbol(name), rhs))
    return equations


def format_graph(graph: ElectricalGraph) -> str:
    lines = ["Tree branches:"]
    lines += [f"  {e.describe()}" for e in graph.tree]
    lines.append("Chords:")
    lines += [f"  {e.describe()}" for e in graph.chords]
    return "\n".join(lines)


def format_loop_matrix(loop_matrix: LoopMatrix) -> str:
    width = max([len(e.comp_id) for e in loop_matrix.tree + loop_matrix.chords] + [3]) + 1
    header = " " * width + "".join(f"{e.comp_id:>{width}}" for e in loop_matrix.tree)
    rows = [header]
    for i, chord in enumerate(loop_matrix.chords):
        rows.append(f"{chord.comp_id:<{width}}" + "".join(f"{int(v):>{width}d}" for v in loop_matrix[i]))
    return "\n".join(rows)


def format_system(system: StateSpaceSystem) -> str:
    """Render the system matrices with their row and column labels."""
    with np.printoptions(precision=4, suppress=False, linewidth=120):
        lines = [
            f"States: {system.state_names}",
            f"Inputs: {[e.comp_id for e in system.input_elements]} = {system.u.tolist()}",
            f"Outputs: {list(system.output_names)}",
            f"A =\n{system.A}",
            f"B =\n{system.B}",
            f"C =\n{system.C}",
            f"D =\n{system.D}",
            f"x0 = {system.x0}",
        ]
    if system.unresolved:
        lines.append(f"Unresolved: {list(system.unresolved)}")
    return "\n".join(lines)


def format_trace(trace: SimulationTrace, system: StateSpaceSystem, samples: int = 11) -> str:
    """Table of evenly spaced samples of the states and outputs."""
    names = system.state_names + list(system.output_names)
    header = f"{'t [s]':>14}" + "".join(f"{name:>14}" for name in names)
    rows = [header]
    if len(trace.time):
        indices = np.unique(np.linspace(0, len(trace.time) - 1, min(samples, len(trace.time))).astype(int))
        for k in indices:
            values = list(trace.states[k]) + list(trace.outputs[k])
            rows.append(f"{trace.time[k]:>14.6e}" + "".join(f"{v:>14.6e}" for v in values))
    rows.append(f"Status: {trace.status.value}, step {trace.step_size:.3e} s, {trace.steps} steps")
    if trace.message:
        rows.append(trace.message)
    return "\n".join(rows)


def log_report(graph: ElectricalGraph, loop_matrix: LoopMatrix, system: StateSpaceSystem,
               trace: SimulationTrace = None):
    logging.info("\n" + format_graph(graph))
    logging.info("Loop matrix:\n" + format_loop_matrix(loop_matrix))
    for equation in kvl_equations(loop_matrix) + kcl_equations(loop_matrix):
        logging.debug(f"  {equation}")
    logging.info("\n" + format_system(system))
    for equation in state_equations(system):
        logging.info(f"  {equation}")
    if trace is not None:
        logging.info("\n" + format_trace(trace, system))
