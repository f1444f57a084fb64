import numpy as np
import pytest
from statespace_sim.core.analysis import spectral_radius_estimate
from statespace_sim.core.electrical_graph import TopologyBuilder
from statespace_sim.core.engine_settings import EngineSettings
from statespace_sim.core.integrator import (
    CancellationToken, Integrator, NumericalInstabilityError, SimulationCancelledError, SimulationStatus
)
from statespace_sim.core.loop_matrix import LoopMatrixBuilder
from statespace_sim.core import integrator as integrator_module
from statespace_sim.core.outputs import ElementCurrent, ElementVoltage, LinearCombination
from statespace_sim.core.state_space_model import StateSpaceAssembler


def assemble(elements, outputs=None):
    graph = TopologyBuilder().build(elements)
    loop_matrix = LoopMatrixBuilder().build(graph)
    return StateSpaceAssembler().assemble(elements, graph, loop_matrix, outputs)


class CountingToken(CancellationToken):
    """Reports cancellation after a fixed number of checks."""

    def __init__(self, limit):
        super().__init__()
        self.limit = limit
        self.checks = 0

    @property
    def cancelled(self):
        self.checks += 1
        return self.checks > self.limit


def test_rc_matches_analytic_solution(rc_circuit):
    system = assemble(rc_circuit)
    tau = 1000.0 * 1e-6

    trace = Integrator().integrate(system, 5 * tau, tau / 100)

    assert trace.status is SimulationStatus.COMPLETED
    assert trace.steps == 500
    expected = 5.0 * (1 - np.exp(-trace.time / tau))
    np.testing.assert_allclose(trace.states[1:, 0], expected[1:], rtol=0.01)
    assert trace.states[-1, 0] == pytest.approx(5.0 * (1 - np.exp(-5)), rel=0.01)


def test_rl_matches_analytic_solution(rl_circuit):
    system = assemble(rl_circuit)
    tau = 0.1 / 1000.0

    trace = Integrator().integrate(system, 5 * tau, tau / 100)

    assert trace.success
    expected = 0.001 * (1 - np.exp(-trace.time / tau))
    np.testing.assert_allclose(trace.states[1:, 0], expected[1:], rtol=0.01)


def test_auto_step_limits_step(rlc_circuit):
    system = assemble(rlc_circuit)
    integrator = Integrator()

    assert integrator.stable_step(system.A, 1e-3) == pytest.approx(1e-6)
    assert integrator.select_step(system.A, 1e-3) == pytest.approx(1e-7)
    assert integrator.select_step(system.A, 1e-8) == pytest.approx(1e-8)


def test_select_step_estimates_spectral_radius_once(rlc_circuit, monkeypatch):
    system = assemble(rlc_circuit)
    calls = []

    def counting_estimate(A):
        calls.append(A)
        return spectral_radius_estimate(A)

    monkeypatch.setattr(integrator_module, "spectral_radius_estimate", counting_estimate)

    assert Integrator().select_step(system.A, 1e-3) == pytest.approx(1e-7)
    assert len(calls) == 1


def test_auto_step_disabled_keeps_request(rlc_circuit):
    system = assemble(rlc_circuit)
    integrator = Integrator(EngineSettings(auto_step=False))
    assert integrator.select_step(system.A, 1e-3) == 1e-3


def test_rlc_stays_finite_and_settles(rlc_circuit):
    system = assemble(rlc_circuit)

    trace = Integrator().integrate(system, 1e-3, 2e-6)

    assert trace.success
    assert trace.step_size == pytest.approx(1e-7)
    assert np.all(np.isfinite(trace.states))
    assert trace.states[-1, 0] == pytest.approx(5.0, abs=0.25)


def test_oversized_step_is_unstable(rlc_circuit):
    system = assemble(rlc_circuit)
    integrator = Integrator(EngineSettings(auto_step=False))
    step = 100 * integrator.stable_step(system.A, 1.0)

    trace = integrator.integrate(system, 2000 * step, step)

    assert trace.status is SimulationStatus.UNSTABLE
    assert 0 < trace.steps < trace.requested_steps
    assert np.all(np.isfinite(trace.states))
    assert trace.message
    with pytest.raises(NumericalInstabilityError):
        trace.raise_for_status()


def test_non_finite_output_is_unstable(rc_circuit):
    # the capacitor voltage stays below 5 V, the scaled output overflows once it passes ~1.8 V
    scaled = LinearCombination(terms=((1e308, ElementVoltage(comp_id="C1")),))
    system = assemble(rc_circuit, outputs=[scaled])

    trace = Integrator().integrate(system, 1e-3, 1e-5)

    assert trace.status is SimulationStatus.UNSTABLE
    assert 0 < trace.steps < trace.requested_steps
    assert np.all(np.isfinite(trace.states))
    assert np.all(np.isfinite(trace.outputs))
    assert "Output" in trace.message


def test_shapes(two_state_circuit):
    system = assemble(two_state_circuit, outputs=[ElementCurrent(comp_id="R2")])

    trace = Integrator().integrate(system, 1e-4, 1e-6)

    k = trace.steps
    assert trace.time.shape == (k + 1,)
    assert trace.states.shape == (k + 1, 2)
    assert trace.outputs.shape == (k + 1, 1)
    assert trace.time[0] == 0.0


def test_purely_resistive_outputs(divider_circuit):
    system = assemble(divider_circuit, outputs=[ElementCurrent(comp_id="R1")])

    trace = Integrator().integrate(system, 1e-3, 1e-4)

    assert trace.steps == 10
    assert trace.states.shape == (11, 0)
    np.testing.assert_allclose(trace.outputs[:, 0], 0.0025)


def test_cancel_before_start(rc_circuit):
    system = assemble(rc_circuit)
    token = CancellationToken()
    token.cancel()

    trace = Integrator().integrate(system, 1e-3, 1e-5, cancel_token=token)

    assert trace.status is SimulationStatus.CANCELLED
    assert len(trace.time) == 1
    with pytest.raises(SimulationCancelledError):
        trace.raise_for_status()


def test_cancel_mid_run(rc_circuit):
    system = assemble(rc_circuit)

    trace = Integrator().integrate(system, 1e-3, 1e-5, cancel_token=CountingToken(25))

    assert trace.status is SimulationStatus.CANCELLED
    assert trace.steps == 25
    assert trace.requested_steps == 100


def test_zero_total_time(rc_circuit):
    system = assemble(rc_circuit)
    trace = Integrator().integrate(system, 0.0, 1e-5)

    assert trace.success
    assert trace.steps == 0
    np.testing.assert_allclose(trace.states[0], system.x0)


def test_invalid_arguments(rc_circuit):
    system = assemble(rc_circuit)
    with pytest.raises(ValueError):
        Integrator().integrate(system, -1.0, 1e-5)
    with pytest.raises(ValueError):
        Integrator().integrate(system, 1.0, 0.0)


def test_trace_is_read_only(rc_circuit):
    trace = Integrator().integrate(assemble(rc_circuit), 1e-4, 1e-5)
    with pytest.raises(ValueError):
        trace.states[0, 0] = 1.0
