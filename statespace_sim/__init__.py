from .core import (
    Element, ElementKind, ParserText, ParserJson, Engine, EngineSettings,
    TopologyBuilder, LoopMatrixBuilder, StateSpaceAssembler, Integrator, simulate
)
from .core.outputs import ElementCurrent, ElementVoltage, LinearCombination
from .run_simulation import run_simulation, run_simulation_from_file

__version__ = "0.1.0"

# Export the main classes and functions that users will need
__all__ = [
    'Element',
    'ElementKind',
    'ParserText',
    'ParserJson',
    'Engine',
    'EngineSettings',
    'TopologyBuilder',
    'LoopMatrixBuilder',
    'StateSpaceAssembler',
    'Integrator',
    'simulate',
    'ElementCurrent',
    'ElementVoltage',
    'LinearCombination',
    'run_simulation',
    'run_simulation_from_file',
]
