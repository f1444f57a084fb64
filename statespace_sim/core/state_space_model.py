import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Set, Tuple
import numpy as np
from .components import Element, ElementKind, same_node_pair
from .electrical_graph import ElectricalGraph
from .engine_settings import EngineSettings
from .loop_matrix import LoopMatrix
from .outputs import OutputDefinition, state_outputs
from .topology_classifier import Quantity, TopologyClassifier


def _read_only(array) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class StateSpaceSystem:
    """Linear system dx/dt = A x + B u, y = C x + D u with constant inputs.

    Attributes:
        A, B, C, D: System matrices, read-only.
        x0: Initial state.
        u: Input values (current sources, then voltage sources).
        state_elements: Capacitors then inductors, matching the rows of A.
        input_elements: Current sources then voltage sources, matching the columns of B.
        output_names: Label of each row of C.
        unresolved: Ids of elements whose terms could not be derived and were set to 0.
    """
    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: np.ndarray
    x0: np.ndarray
    u: np.ndarray
    state_elements: Tuple[Element, ...]
    input_elements: Tuple[Element, ...]
    output_names: Tuple[str, ...]
    unresolved: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("A", "B", "C", "D", "x0", "u"):
            object.__setattr__(self, name, _read_only(getattr(self, name)))

    @property
    def n_states(self) -> int:
        return len(self.state_elements)

    @property
    def n_inputs(self) -> int:
        return len(self.input_elements)

    @property
    def n_outputs(self) -> int:
        return len(self.output_names)

    @property
    def state_names(self) -> List[str]:
        return [f"v_{e.comp_id}" if e.kind is ElementKind.CAPACITOR else f"i_{e.comp_id}"
                for e in self.state_elements]

    def state_index(self, comp_id: str) -> int:
        for index, element in enumerate(self.state_elements):
            if element.comp_id == comp_id:
                return index
        raise KeyError(f"'{comp_id}' is not a state element")

    def with_initial_conditions(self, x0: Sequence[float]) -> "StateSpaceSystem":
        """Return a copy of the system starting from ``x0``."""
        x0 = np.asarray(x0, dtype=float)
        if x0.shape != (self.n_states,):
            raise ValueError(f"Initial conditions must have shape ({self.n_states},), got {x0.shape}")
        return replace(self, x0=x0)


def identify_state_elements(elements: Sequence[Element]) -> List[Element]:
    """Capacitors in input order, then inductors in input order."""
    return ([e for e in elements if e.kind is ElementKind.CAPACITOR] +
            [e for e in elements if e.kind is ElementKind.INDUCTOR])


def identify_input_elements(elements: Sequence[Element]) -> List[Element]:
    """Current sources in input order, then voltage sources in input order."""
    return ([e for e in elements if e.kind is ElementKind.CURRENT_SOURCE] +
            [e for e in elements if e.kind is ElementKind.VOLTAGE_SOURCE])


class StateSpaceAssembler:
    """Builds a StateSpaceSystem from the loop matrix of a circuit.

    Capacitor rows come from KCL on the capacitor's fundamental cutset and
    inductor rows from KVL around the inductor's fundamental loop. Resistor
    terms are resolved by a TopologyClassifier.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def assemble(self, elements: Sequence[Element], graph: ElectricalGraph, loop_matrix: LoopMatrix,
                 outputs: Optional[Sequence[OutputDefinition]] = None) -> StateSpaceSystem:
        """Assemble the state-space matrices.

        Args:
            elements: Circuit elements in input order.
            graph: Tree/chord partition of the elements.
            loop_matrix: Fundamental-loop matrix of ``graph``.
            outputs: Output definitions; defaults to every state variable.

        Returns:
            StateSpaceSystem: matrices, initial state and bookkeeping.
        """
        elements = tuple(elements)
        state_elements = identify_state_elements(elements)
        input_elements = identify_input_elements(elements)
        n, m = len(state_elements), len(input_elements)
        classifier = TopologyClassifier(graph, loop_matrix, state_elements, input_elements)

        A = np.zeros((n, n))
        B = np.zeros((n, m))
        for index, element in enumerate(state_elements):
            if element.kind is ElementKind.CAPACITOR:
                row = self._capacitor_row(classifier, element, index, graph, loop_matrix)
            else:
                row = self._inductor_row(classifier, element, graph, loop_matrix)
            A[index] = row[:n]
            B[index] = row[n:]
            logging.debug(f"d{element.state_var}/dt row: A={A[index].tolist()}, B={B[index].tolist()}")

        if outputs is None:
            outputs = state_outputs(state_elements)
        C = np.zeros((len(outputs), n))
        D = np.zeros((len(outputs), m))
        for index, output in enumerate(outputs):
            form = output.expression(classifier)
            C[index] = form[:n]
            D[index] = form[n:]

        system = StateSpaceSystem(
            A=A,
            B=B,
            C=C,
            D=D,
            x0=self._initial_conditions(elements, state_elements),
            u=np.array([e.value for e in input_elements], dtype=float),
            state_elements=tuple(state_elements),
            input_elements=tuple(input_elements),
            output_names=tuple(output.label for output in outputs),
            unresolved=tuple(classifier.unresolved),
        )
        logging.info(f"State-space system with {n} states, {m} inputs and {len(outputs)} outputs")
        if system.unresolved:
            logging.warning(f"Unresolved elements defaulted to 0: {list(system.unresolved)}")
        return system

    def _capacitor_row(self, classifier: TopologyClassifier, capacitor: Element, index: int,
                       graph: ElectricalGraph, loop_matrix: LoopMatrix) -> np.ndarray:
        row = np.zeros(classifier.n_vars)
        in_cutset: Set[str] = set()
        if graph.in_tree(capacitor):
            for chord, sign in loop_matrix.linked_chords(capacitor):
                if chord.kind is ElementKind.RESISTOR:
                    row += classifier.classify(chord, sign, Quantity.CURRENT).coefficients
                    in_cutset.add(chord.comp_id)
                else:
                    row += sign * classifier.current_of(chord)
        else:
            logging.warning(f"Capacitor {capacitor.comp_id} is a chord; its state equation has no cutset terms")
        row /= capacitor.value

        if self.settings.damping:
            for element in graph.elements:
                if element.kind is not ElementKind.RESISTOR or not same_node_pair(element, capacitor):
                    continue
                if element.comp_id in in_cutset:
                    continue
                row[index] -= 1.0 / (element.value * capacitor.value)
                logging.debug(f"Damping term of {element.comp_id} added to {capacitor.comp_id}")
        return row

    def _inductor_row(self, classifier: TopologyClassifier, inductor: Element,
                      graph: ElectricalGraph, loop_matrix: LoopMatrix) -> np.ndarray:
        row = np.zeros(classifier.n_vars)
        if graph.chord_index(inductor) is not None:
            for branch, sign in loop_matrix.linked_tree(inductor):
                if branch.kind is ElementKind.RESISTOR:
                    row += classifier.classify(branch, -sign, Quantity.VOLTAGE).coefficients
                else:
                    row -= sign * classifier.voltage_of(branch)
        else:
            logging.warning(f"Inductor {inductor.comp_id} is a tree branch; its state equation has no loop terms")
        return row / inductor.value

    def _initial_conditions(self, elements: Sequence[Element], state_elements: Sequence[Element]) -> np.ndarray:
        """Zero state, except source-free circuits with inductors get seeded capacitors."""
        x0 = np.zeros(len(state_elements))
        has_inductor = any(e.kind is ElementKind.INDUCTOR for e in elements)
        has_source = any(e.is_source for e in elements)
        if has_inductor and not has_source:
            for index, element in enumerate(state_elements):
                if element.kind is ElementKind.CAPACITOR:
                    x0[index] = self.settings.lc_seed_voltage
            logging.info(f"Source-free circuit: capacitors seeded with {self.settings.lc_seed_voltage} V")
        return x0
