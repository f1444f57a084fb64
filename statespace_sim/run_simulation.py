# Main function to run a circuit simulation from a netlist file
import logging
import os
import sys
from typing import Optional, Sequence

from statespace_sim.core.components import Element
from statespace_sim.core.engine import Engine, SimulationResult
from statespace_sim.core.engine_settings import EngineSettings
from statespace_sim.core.outputs import OutputDefinition
from statespace_sim.core.parser import ParserJson, ParserText
from statespace_sim.core.report import log_report
from statespace_sim.core.utils import plot_results


def configure_logging(log_file: str = "statespace_sim.log", level: int = logging.DEBUG):
    """Log to a file and to the console."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, mode='w'),
            logging.StreamHandler()
        ]
    )

    # Suppress noisy loggers from other libraries
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)


def run_simulation_from_file(file_path: str, simulation_time: Optional[float] = None,
                             time_step: Optional[float] = None, plot_file: Optional[str] = None,
                             engine_settings: Optional[EngineSettings] = None) -> SimulationResult:
    """
    Run a circuit simulation from a netlist file.

    Files ending in .json are read with ParserJson, everything else with ParserText.

    Args:
        file_path: Path to the circuit file
        simulation_time: Total simulated time, recommended from the circuit when omitted
        time_step: Requested step, recommended from the circuit when omitted
        plot_file: Image file for the plot of the results; no plot when omitted
        engine_settings: Simulation settings

    Returns:
        SimulationResult with graph, loop matrix, system and trace
    """
    parser = ParserJson() if file_path.lower().endswith(".json") else ParserText()
    elements = parser.parse_file(file_path)
    return run_simulation(elements, simulation_time, time_step, plot_file=plot_file,
                          engine_settings=engine_settings)


def run_simulation(elements: Sequence[Element], simulation_time: Optional[float] = None,
                   time_step: Optional[float] = None, outputs: Optional[Sequence[OutputDefinition]] = None,
                   plot_file: Optional[str] = None,
                   engine_settings: Optional[EngineSettings] = None) -> SimulationResult:
    """
    Run a circuit simulation and report every stage.

    Args:
        elements: Circuit elements
        simulation_time: Total simulated time
        time_step: Requested step
        outputs: Output definitions, defaults to the state variables
        plot_file: Image file for the plot of the results
        engine_settings: Simulation settings

    Returns:
        SimulationResult with graph, loop matrix, system and trace
    """
    engine = Engine(elements, outputs=outputs, engine_settings=engine_settings)
    engine.initialize()
    trace = engine.run_simulation(simulation_time, time_step)

    log_report(engine.graph, engine.loop_matrix, engine.system, trace)

    if plot_file is not None and len(trace.time) > 0:
        plot_results(trace, engine.system, plot_file)
        logging.info(f"Plot saved to {plot_file}")

    return SimulationResult(graph=engine.graph, loop_matrix=engine.loop_matrix, system=engine.system, trace=trace)


if __name__ == "__main__":
    configure_logging()
    circuit_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join('tests', 'test_data', 'rlc.txt')
    plot_path = os.path.splitext(os.path.basename(circuit_file))[0] + ".png"
    run_simulation_from_file(circuit_file, plot_file=plot_path)
