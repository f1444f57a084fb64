import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
from .analysis import recommend_simulation_parameters
from .circuit_sanity_checker import CircuitSanityChecker
from .components import Element
from .electrical_graph import ElectricalGraph, TopologyBuilder
from .engine_settings import EngineSettings
from .integrator import CancellationToken, Integrator, SimulationTrace
from .loop_matrix import LoopMatrix, LoopMatrixBuilder
from .outputs import OutputDefinition
from .state_space_model import StateSpaceAssembler, StateSpaceSystem


@dataclass(frozen=True)
class SimulationResult:
    """Everything one simulation request produced."""
    graph: ElectricalGraph
    loop_matrix: LoopMatrix
    system: StateSpaceSystem
    trace: SimulationTrace


class Engine:
    """
    Class for handling circuit simulation of a list of elements.

    The engine runs the pipeline topology -> loop matrix -> state-space
    system once in initialize() and integrates the system on every call to
    run_simulation().
    """

    def __init__(self, elements: Sequence[Element], outputs: Optional[Sequence[OutputDefinition]] = None,
                 engine_settings: Optional[EngineSettings] = None):
        """
        Initialize the Engine class.

        Args:
            elements: Circuit elements in input order
            outputs: Output definitions, defaults to the state variables
            engine_settings: Simulation settings
        """
        self.elements = tuple(elements)
        self.outputs = list(outputs) if outputs is not None else None
        self.engine_settings = engine_settings or EngineSettings()
        self.graph = None
        self.loop_matrix = None
        self.system = None
        self.sanity_report: Dict[str, List[str]] = {'errors': [], 'warnings': []}
        self.initialized = False

    def initialize(self) -> None:
        """
        Build the state-space system.
        This method should be called before running any simulation.

        Raises:
            CircuitTopologyError: if the sanity checks fail and strict_topology is set
        """
        self.graph = TopologyBuilder().build(self.elements)

        checker = CircuitSanityChecker(self.elements, self.graph)
        try:
            self.sanity_report = checker.check_all(raise_on_error=self.engine_settings.strict_topology)
        finally:
            checker.log_results()

        self.loop_matrix = LoopMatrixBuilder().build(self.graph)
        self.system = StateSpaceAssembler(self.engine_settings).assemble(
            self.elements, self.graph, self.loop_matrix, self.outputs
        )
        self.initialized = True

    def simulation_parameters(self, simulation_time: Optional[float] = None,
                              time_step: Optional[float] = None) -> Tuple[float, float]:
        """Resolve time and step: arguments, then settings, then the recommendation for the circuit."""
        if simulation_time is None:
            simulation_time = self.engine_settings.simulation_time
        if time_step is None:
            time_step = self.engine_settings.time_step

        if simulation_time is None or simulation_time <= 0 or time_step is None or time_step <= 0:
            recommended_time, recommended_step = recommend_simulation_parameters(self.elements)
            if simulation_time is None or simulation_time <= 0:
                simulation_time = recommended_time
            if time_step is None or time_step <= 0:
                time_step = recommended_step
        return simulation_time, time_step

    def run_simulation(self, simulation_time: Optional[float] = None, time_step: Optional[float] = None,
                       initial_conditions: Optional[Sequence[float]] = None,
                       cancel_token: Optional[CancellationToken] = None) -> SimulationTrace:
        """Integrate the assembled system.

        Args:
            simulation_time: Total simulated time in seconds
            time_step: Requested step in seconds
            initial_conditions: Initial state vector (defaults to the assembled x0)
            cancel_token: Optional token to stop the run between steps

        Returns:
            SimulationTrace with time, states, outputs and status
        """
        if not self.initialized:
            raise ValueError("Engine must be initialized before running simulation")

        simulation_time, time_step = self.simulation_parameters(simulation_time, time_step)
        system = self.system
        if initial_conditions is not None:
            system = system.with_initial_conditions(np.asarray(initial_conditions, dtype=float))

        trace = Integrator(self.engine_settings).integrate(system, simulation_time, time_step, cancel_token)
        if trace.success:
            logging.info(f"Simulation completed: {trace.steps} steps up to t={trace.time[-1]:.6e} s")
        return trace


def simulate(elements: Sequence[Element], simulation_time: Optional[float] = None,
             time_step: Optional[float] = None, outputs: Optional[Sequence[OutputDefinition]] = None,
             engine_settings: Optional[EngineSettings] = None,
             cancel_token: Optional[CancellationToken] = None) -> SimulationResult:
    """Run the whole pipeline once and return all intermediate results."""
    engine = Engine(elements, outputs=outputs, engine_settings=engine_settings)
    engine.initialize()
    trace = engine.run_simulation(simulation_time, time_step, cancel_token=cancel_token)
    return SimulationResult(graph=engine.graph, loop_matrix=engine.loop_matrix, system=engine.system, trace=trace)
