import os
import pytest
from statespace_sim.core.circuit_sanity_checker import CircuitTopologyError
from statespace_sim.core.integrator import SimulationStatus
from statespace_sim.run_simulation import run_simulation_from_file


@pytest.mark.parametrize("file_name", ["rc.txt", "rl.txt", "rlc.txt", "lc.txt", "two_state.txt", "rlc.json"])
def test_example_circuits_run(test_data_dir, file_name):
    result = run_simulation_from_file(os.path.join(test_data_dir, file_name))

    assert result.trace.status is SimulationStatus.COMPLETED
    assert result.system.unresolved == ()


def test_plot_file_is_written(test_data_dir, tmp_path):
    plot_file = os.path.join(str(tmp_path), "rc.png")
    run_simulation_from_file(os.path.join(test_data_dir, "rc.txt"), 1e-3, 1e-5, plot_file=plot_file)
    assert os.path.exists(plot_file)


def test_invalid_circuit_file(tmp_path):
    circuit_file = tmp_path / "loop.txt"
    circuit_file.write_text("V1 V 5 1 0\nV2 V 5 1 0\n")
    with pytest.raises(CircuitTopologyError):
        run_simulation_from_file(str(circuit_file))
