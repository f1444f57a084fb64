import numpy as np
import pytest
from statespace_sim.core.circuit_sanity_checker import CircuitTopologyError
from statespace_sim.core.components import Element
from statespace_sim.core.engine import Engine, SimulationResult, simulate
from statespace_sim.core.engine_settings import EngineSettings
from statespace_sim.core.integrator import CancellationToken, SimulationStatus
from statespace_sim.core.outputs import ElementCurrent


def test_run_before_initialize_raises(rc_circuit):
    engine = Engine(rc_circuit)
    with pytest.raises(ValueError, match="initialized"):
        engine.run_simulation(1e-3, 1e-5)


def test_initialize_builds_every_stage(rc_circuit):
    engine = Engine(rc_circuit)
    engine.initialize()

    assert engine.initialized
    assert [e.comp_id for e in engine.graph.chords] == ["R1"]
    assert engine.loop_matrix.shape == (1, 2)
    assert engine.system.n_states == 1
    assert engine.sanity_report == {'errors': [], 'warnings': []}


def test_rc_simulation(rc_circuit):
    engine = Engine(rc_circuit)
    engine.initialize()

    trace = engine.run_simulation(5e-3, 1e-5)

    tau = 1e-3
    assert trace.status is SimulationStatus.COMPLETED
    expected = 5.0 * (1 - np.exp(-trace.time / tau))
    np.testing.assert_allclose(trace.outputs[1:, 0], expected[1:], rtol=0.01)


def test_recommended_parameters_are_used(rc_circuit):
    engine = Engine(rc_circuit)
    engine.initialize()

    trace = engine.run_simulation()

    # 5 tau in steps of tau / 100
    assert trace.steps == 500
    assert trace.time[-1] == pytest.approx(5e-3)


def test_settings_provide_parameters(rc_circuit):
    engine = Engine(rc_circuit, engine_settings=EngineSettings(simulation_time=1e-3, time_step=1e-5))
    engine.initialize()

    assert engine.simulation_parameters() == (1e-3, 1e-5)
    assert engine.run_simulation().steps == 100


def test_non_positive_settings_fall_back_to_recommendation(rl_circuit):
    engine = Engine(rl_circuit, engine_settings=EngineSettings(simulation_time=0.0, time_step=-1.0))
    simulation_time, time_step = engine.simulation_parameters()

    assert simulation_time == pytest.approx(5e-4)
    assert time_step == pytest.approx(1e-6)


def test_initial_conditions_override(rlc_circuit):
    engine = Engine(rlc_circuit)
    engine.initialize()

    trace = engine.run_simulation(1e-6, 1e-7, initial_conditions=[2.0, 0.0])

    np.testing.assert_allclose(trace.states[0], [2.0, 0.0])
    np.testing.assert_allclose(engine.system.x0, [0.0, 0.0])


def test_topology_errors_fail_fast():
    elements = [
        Element.voltage_source("V1", 5.0, 1, 0),
        Element.voltage_source("V2", 3.0, 1, 0),
        Element.resistor("R1", 10.0, 1, 0),
    ]
    engine = Engine(elements)
    with pytest.raises(CircuitTopologyError):
        engine.initialize()
    assert not engine.initialized


def test_topology_errors_tolerated_when_not_strict():
    elements = [
        Element.resistor("R1", 10.0, 1, 0),
        Element.capacitor("C1", 1e-6, 1, 0),
        Element.resistor("R2", 10.0, 5, 6),
    ]
    engine = Engine(elements, engine_settings=EngineSettings(strict_topology=False))
    engine.initialize()

    assert engine.initialized
    assert engine.sanity_report['errors']


def test_cancellation_token_is_passed_through(rc_circuit):
    engine = Engine(rc_circuit)
    engine.initialize()
    token = CancellationToken()
    token.cancel()

    trace = engine.run_simulation(1e-3, 1e-5, cancel_token=token)
    assert trace.status is SimulationStatus.CANCELLED


def test_simulate_returns_all_stages(divider_circuit):
    result = simulate(divider_circuit, 1e-3, 1e-4, outputs=[ElementCurrent(comp_id="R2")])

    assert isinstance(result, SimulationResult)
    assert result.system.n_states == 0
    assert result.loop_matrix.shape == (1, 2)
    np.testing.assert_allclose(result.trace.outputs[:, 0], 0.0025)


def test_source_free_lc_oscillates(lc_circuit):
    result = simulate(lc_circuit)

    u_c = result.trace.states[:, 0]
    assert u_c[0] == 1.0
    assert result.trace.success
    assert np.any(u_c < 0)
