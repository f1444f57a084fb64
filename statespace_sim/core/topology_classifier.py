import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
from .components import Element, ElementKind, meets_at, same_node_pair, shared_node
from .electrical_graph import ElectricalGraph
from .loop_matrix import LoopMatrix


class Quantity(str, Enum):
    VOLTAGE = "voltage"
    CURRENT = "current"


class Relation(str, Enum):
    """How a resistor relates to the element it was resolved against."""
    SERIES = "series"
    PARALLEL = "parallel"
    LOOP = "loop"
    SHARED_NODE = "shared-node"
    RESISTIVE = "resistive"
    UNRESOLVED = "unresolved"


class Rule(str, Enum):
    INDUCTOR_CHORD = "inductor-chord"
    CURRENT_SOURCE_CHORD = "current-source-chord"
    CAPACITOR_BRANCH = "capacitor-branch"
    VOLTAGE_SOURCE_BRANCH = "voltage-source-branch"
    RESISTIVE_REDUCTION = "resistive-reduction"
    ADJACENT_STATE = "adjacent-state"
    NO_LOOP = "no-loop"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class PartnerMatch:
    element: Element
    sign: int
    rule: Rule
    relation: Relation


@dataclass(frozen=True)
class Substitution:
    """A resistor voltage or current written as a linear form.

    ``coefficients`` spans the state variables followed by the inputs, in the
    order the classifier was built with.
    """
    element: Element
    quantity: Quantity
    coefficients: np.ndarray
    n_states: int
    rule: Rule
    relation: Relation
    partners: Tuple[PartnerMatch, ...] = ()

    @property
    def state_coefficients(self) -> np.ndarray:
        return self.coefficients[:self.n_states]

    @property
    def input_coefficients(self) -> np.ndarray:
        return self.coefficients[self.n_states:]

    @property
    def resolved(self) -> bool:
        return self.rule is not Rule.UNRESOLVED

    def scaled(self, factor: float) -> "Substitution":
        return Substitution(
            element=self.element,
            quantity=self.quantity,
            coefficients=self.coefficients * factor,
            n_states=self.n_states,
            rule=self.rule,
            relation=self.relation,
            partners=self.partners,
        )


# Tree resistors are substituted through their chords, chord resistors through
# their tree branches.
_TREE_RESISTOR_RULES = {
    ElementKind.INDUCTOR: Rule.INDUCTOR_CHORD,
    ElementKind.CURRENT_SOURCE: Rule.CURRENT_SOURCE_CHORD,
}
_CHORD_RESISTOR_RULES = {
    ElementKind.CAPACITOR: Rule.CAPACITOR_BRANCH,
    ElementKind.VOLTAGE_SOURCE: Rule.VOLTAGE_SOURCE_BRANCH,
}


class TopologyClassifier:
    """Expresses element voltages and currents in terms of states and inputs.

    Resistors are resolved against their fundamental-loop partners. A tree
    resistor carries the sum of the currents of the chords through it; a chord
    resistor sees minus the sum of the tree voltages around its loop. Resistors
    coupled to other resistors are resolved together by solving the chord
    resistor currents of the whole resistive sub-network.

    Args:
        graph: Tree/chord partition of the circuit.
        loop_matrix: Fundamental-loop matrix of ``graph``.
        state_elements: Capacitors and inductors in state-vector order.
        input_elements: Current and voltage sources in input-vector order.
    """

    def __init__(self, graph: ElectricalGraph, loop_matrix: LoopMatrix,
                 state_elements: Sequence[Element], input_elements: Sequence[Element]):
        self.graph = graph
        self.loop_matrix = loop_matrix
        self.state_elements = tuple(state_elements)
        self.input_elements = tuple(input_elements)
        self.n_states = len(self.state_elements)
        self.n_vars = self.n_states + len(self.input_elements)
        self._index = {e.comp_id: i for i, e in enumerate(self.state_elements)}
        self._index.update({e.comp_id: self.n_states + i for i, e in enumerate(self.input_elements)})
        self._elements = {e.comp_id: e for e in graph.elements}
        self._cache: Dict[Tuple[str, Quantity], Substitution] = {}
        self._reduction: Optional[Dict[str, np.ndarray]] = None
        self._reduction_done = False
        self.unresolved: List[str] = []

    def element(self, comp_id: str) -> Element:
        try:
            return self._elements[comp_id]
        except KeyError:
            raise ValueError(f"Unknown element '{comp_id}'") from None

    def basis(self, element: Element) -> Optional[np.ndarray]:
        """Unit form selecting the element's state or input variable."""
        index = self._index.get(element.comp_id)
        if index is None:
            return None
        vector = np.zeros(self.n_vars)
        vector[index] = 1.0
        return vector

    def classify(self, component: Element, related_sign: float, quantity: Quantity) -> Substitution:
        """Resolve a resistor's voltage or current.

        Args:
            component: The resistor to resolve.
            related_sign: Factor applied to every coefficient, usually the
                loop-matrix sign linking the resistor to the caller's element.
            quantity: Whether the voltage or the current is wanted.

        Returns:
            Substitution: the scaled linear form and how it was found.
        """
        if component.kind is not ElementKind.RESISTOR:
            raise ValueError(f"Only resistors can be classified, got {component.kind.value} '{component.comp_id}'")
        key = (component.comp_id, quantity)
        if key not in self._cache:
            self._cache[key] = self._classify_resistor(component, quantity)
        return self._cache[key].scaled(related_sign)

    def voltage_of(self, element: Element) -> np.ndarray:
        """Voltage of any element as a form over states and inputs."""
        kind = element.kind
        if kind in (ElementKind.CAPACITOR, ElementKind.VOLTAGE_SOURCE):
            return self._basis_or_zero(element)
        if kind is ElementKind.RESISTOR:
            return self.classify(element, 1, Quantity.VOLTAGE).coefficients
        if self.graph.chord_index(element) is None:
            return self._unresolved(element, "voltage of a tree inductor")
        form = np.zeros(self.n_vars)
        for branch, sign in self.loop_matrix.linked_tree(element):
            form -= sign * self.voltage_of(branch)
        return form

    def current_of(self, element: Element) -> np.ndarray:
        """Current of any element as a form over states and inputs."""
        kind = element.kind
        if kind in (ElementKind.INDUCTOR, ElementKind.CURRENT_SOURCE):
            return self._basis_or_zero(element)
        if kind is ElementKind.RESISTOR:
            return self.classify(element, 1, Quantity.CURRENT).coefficients
        if self.graph.tree_index(element) is None:
            return self._unresolved(element, f"current of a {kind.value} chord")
        form = np.zeros(self.n_vars)
        for chord, sign in self.loop_matrix.linked_chords(element):
            form += sign * self.current_of(chord)
        return form

    def _basis_or_zero(self, element: Element) -> np.ndarray:
        vector = self.basis(element)
        if vector is None:
            return self._unresolved(element, "not part of the state or input vector")
        return vector

    def _unresolved(self, element: Element, reason: str) -> np.ndarray:
        logging.warning(f"Could not resolve {element.comp_id} ({reason}); using 0")
        if element.comp_id not in self.unresolved:
            self.unresolved.append(element.comp_id)
        return np.zeros(self.n_vars)

    def _partners(self, resistor: Element) -> List[Tuple[Element, int]]:
        if self.graph.in_tree(resistor):
            return self.loop_matrix.linked_chords(resistor)
        return self.loop_matrix.linked_tree(resistor)

    def _match(self, resistor: Element, partner: Element, sign: int) -> Optional[PartnerMatch]:
        rules = _TREE_RESISTOR_RULES if self.graph.in_tree(resistor) else _CHORD_RESISTOR_RULES
        rule = rules.get(partner.kind)
        if rule is None or self.basis(partner) is None:
            return None
        if rule in (Rule.INDUCTOR_CHORD, Rule.CURRENT_SOURCE_CHORD):
            relation = Relation.SERIES if self._in_series(resistor, partner) else Relation.LOOP
        else:
            relation = Relation.PARALLEL if same_node_pair(resistor, partner) else Relation.LOOP
        return PartnerMatch(element=partner, sign=sign, rule=rule, relation=relation)

    def _in_series(self, first: Element, second: Element) -> bool:
        node = shared_node(first, second)
        if node is None:
            return False
        return set(self.graph.incident_elements(node)) == {first, second}

    def _classify_resistor(self, resistor: Element, quantity: Quantity) -> Substitution:
        in_tree = self.graph.in_tree(resistor)
        partners = self._partners(resistor)
        closed = in_tree or self.loop_matrix.loop_for(resistor).closed
        matches = [self._match(resistor, partner, sign) for partner, sign in partners]

        if closed and all(match is not None for match in matches):
            substitution = self._from_partners(resistor, quantity, matches, in_tree)
        elif closed and any(p.kind is ElementKind.RESISTOR for p, _ in partners) \
                and resistor.comp_id in self._resistive_reduction():
            current = self._resistive_reduction()[resistor.comp_id]
            form = current if quantity is Quantity.CURRENT else resistor.value * current
            substitution = Substitution(resistor, quantity, form, self.n_states,
                                        Rule.RESISTIVE_REDUCTION, Relation.RESISTIVE)
        else:
            substitution = self._from_adjacency(resistor, quantity)

        logging.debug(
            f"{quantity.value} of {resistor.comp_id}: rule={substitution.rule.value}, "
            f"relation={substitution.relation.value}, coefficients={substitution.coefficients.tolist()}"
        )
        return substitution

    def _from_partners(self, resistor: Element, quantity: Quantity,
                       matches: List[PartnerMatch], in_tree: bool) -> Substitution:
        form = np.zeros(self.n_vars)
        for match in matches:
            if in_tree:
                form += match.sign * self.basis(match.element)
            else:
                form -= match.sign * self.basis(match.element)
        # tree forms are currents, chord forms are voltages
        if in_tree and quantity is Quantity.VOLTAGE:
            form = resistor.value * form
        elif not in_tree and quantity is Quantity.CURRENT:
            form = form / resistor.value

        if matches:
            rule = matches[0].rule
            relation = matches[0].relation if len(matches) == 1 else Relation.LOOP
        else:
            # a tree resistor on no fundamental loop carries no current
            rule, relation = Rule.NO_LOOP, Relation.LOOP
        return Substitution(resistor, quantity, form, self.n_states, rule, relation, tuple(matches))

    def _resistive_reduction(self) -> Dict[str, np.ndarray]:
        """Solve the current of every resistor in terms of states and inputs.

        With P the chord-resistor x tree-resistor block of the loop matrix,
        chord resistor currents satisfy
        ``(R_c + P R_t P^T) i_c = h - P R_t g`` where ``h`` collects the
        capacitor and voltage-source voltages around each chord loop and
        ``g`` the inductor and current-source currents through each tree
        resistor. Returns an empty mapping when some resistor has a partner
        that cannot be substituted.
        """
        if self._reduction_done:
            return self._reduction
        self._reduction_done = True
        self._reduction = {}

        matrix = self.loop_matrix.matrix
        chords, tree = self.loop_matrix.chords, self.loop_matrix.tree
        chord_rs = [i for i, c in enumerate(chords)
                    if c.kind is ElementKind.RESISTOR and self.loop_matrix.loops[i].closed]
        tree_rs = [j for j, b in enumerate(tree) if b.kind is ElementKind.RESISTOR]

        h = np.zeros((len(chord_rs), self.n_vars))
        for k, i in enumerate(chord_rs):
            for j in np.flatnonzero(matrix[i]):
                branch = tree[j]
                if branch.kind is ElementKind.RESISTOR:
                    continue
                if self._match(chords[i], branch, 1) is None:
                    logging.debug(f"No resistive reduction: {chords[i].comp_id} is linked to {branch.comp_id}")
                    return self._reduction
                h[k] -= matrix[i, j] * self.basis(branch)

        g = np.zeros((len(tree_rs), self.n_vars))
        for k, j in enumerate(tree_rs):
            for i in np.flatnonzero(matrix[:, j]):
                chord = chords[i]
                if chord.kind is ElementKind.RESISTOR:
                    continue
                if self._match(tree[j], chord, 1) is None:
                    logging.debug(f"No resistive reduction: {tree[j].comp_id} is linked to {chord.comp_id}")
                    return self._reduction
                g[k] += matrix[i, j] * self.basis(chord)

        r_chord = np.diag([chords[i].value for i in chord_rs])
        r_tree = np.diag([tree[j].value for j in tree_rs])
        p = matrix[np.ix_(chord_rs, tree_rs)]
        if chord_rs:
            chord_currents = np.linalg.solve(r_chord + p @ r_tree @ p.T, h - p @ r_tree @ g)
        else:
            chord_currents = np.zeros((0, self.n_vars))
        tree_currents = p.T @ chord_currents + g

        for k, i in enumerate(chord_rs):
            self._reduction[chords[i].comp_id] = chord_currents[k]
        for k, j in enumerate(tree_rs):
            self._reduction[tree[j].comp_id] = tree_currents[k]
        logging.debug(f"Resistive reduction over {len(chord_rs)} chord and {len(tree_rs)} tree resistors")
        return self._reduction

    def _from_adjacency(self, resistor: Element, quantity: Quantity) -> Substitution:
        if quantity is Quantity.VOLTAGE:
            preference = (ElementKind.INDUCTOR, ElementKind.CAPACITOR)
        else:
            preference = (ElementKind.CAPACITOR, ElementKind.INDUCTOR)

        neighbours = [e for e in self.graph.elements
                      if e != resistor and shared_node(resistor, e) is not None]
        for kind in preference:
            for neighbour in neighbours:
                if neighbour.kind is not kind or self.basis(neighbour) is None:
                    continue
                meet = meets_at(resistor, neighbour, shared_node(resistor, neighbour))
                if kind is ElementKind.INDUCTOR:
                    # series: same current when the two meet
                    sign = 1 if meet else -1
                    current = sign * self.basis(neighbour)
                    form = current if quantity is Quantity.CURRENT else resistor.value * current
                    rule = Rule.INDUCTOR_CHORD
                else:
                    # parallel: same voltage when the two diverge
                    sign = -1 if meet else 1
                    voltage = sign * self.basis(neighbour)
                    form = voltage if quantity is Quantity.VOLTAGE else voltage / resistor.value
                    rule = Rule.CAPACITOR_BRANCH
                logging.info(f"{resistor.comp_id} resolved by adjacency to {neighbour.comp_id}")
                match = PartnerMatch(neighbour, sign, rule, Relation.SHARED_NODE)
                return Substitution(resistor, quantity, form, self.n_states,
                                    Rule.ADJACENT_STATE, Relation.SHARED_NODE, (match,))

        logging.warning(f"Could not resolve the {quantity.value} of resistor {resistor.comp_id}; using 0")
        if resistor.comp_id not in self.unresolved:
            self.unresolved.append(resistor.comp_id)
        return Substitution(resistor, quantity, np.zeros(self.n_vars), self.n_states,
                            Rule.UNRESOLVED, Relation.UNRESOLVED)
