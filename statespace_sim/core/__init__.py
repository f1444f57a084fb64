# statespace_sim/core/__init__.py

# Import from components.py
from .components import Element, ElementKind

# Import from parser.py
from .parser import CircuitParser, ParserJson, ParserText, NetlistParseError

# Import from the pipeline stages
from .electrical_graph import ElectricalGraph, TopologyBuilder
from .loop_matrix import LoopMatrix, LoopMatrixBuilder
from .topology_classifier import TopologyClassifier, Quantity
from .state_space_model import StateSpaceAssembler, StateSpaceSystem
from .integrator import CancellationToken, Integrator, SimulationStatus, SimulationTrace

# Import from engine.py
from .engine import Engine, SimulationResult, simulate
from .engine_settings import EngineSettings

# Define what should be available when someone imports from statespace_sim.core
__all__ = [
    # Main classes
    'Element',
    'ElementKind',
    'CircuitParser',
    'ParserJson',
    'ParserText',
    'NetlistParseError',
    'ElectricalGraph',
    'TopologyBuilder',
    'LoopMatrix',
    'LoopMatrixBuilder',
    'TopologyClassifier',
    'Quantity',
    'StateSpaceAssembler',
    'StateSpaceSystem',
    'CancellationToken',
    'Integrator',
    'SimulationStatus',
    'SimulationTrace',
    'Engine',
    'EngineSettings',
    'SimulationResult',
    'simulate',
]
