"""
Circuit sanity checker for detecting topology issues before a state-space model is built.

The checks work on the tree/chord partition and on a NetworkX multigraph of
the elements, using subgraph views to filter out element kinds.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Set
import networkx as nx
from .components import Element, ElementKind
from .electrical_graph import ElectricalGraph


class CircuitTopologyError(Exception):
    """Exception raised for circuit topology errors."""
    pass


def has_current_path(G: nx.MultiGraph, s, t, exclude_kinds: Iterable[ElementKind] = (),
                     exclude_elements: Set[Element] = None) -> bool:
    """Check if there is a path between two nodes through the remaining elements."""
    exclude_kinds = set(exclude_kinds)
    if exclude_elements is None:
        exclude_elements = set()

    def edge_filter(u, v, k):
        element = G[u][v][k].get('element')
        return (element is not None and
                element.kind not in exclude_kinds and
                element not in exclude_elements)

    H = nx.subgraph_view(G, filter_edge=edge_filter)
    return nx.has_path(H, s, t)


class CircuitSanityChecker:
    """
    Performs sanity checks on a partitioned circuit.

    Errors describe networks the state-space method cannot model at all;
    warnings describe elements that will not get a state equation.
    """

    def __init__(self, elements: Sequence[Element], graph: ElectricalGraph):
        """
        Initialize the sanity checker.

        Args:
            elements: Elements in input order
            graph: Tree/chord partition of the same elements
        """
        self.elements = tuple(elements)
        self.graph = graph
        self.multigraph = graph.to_networkx()
        self.warnings = []
        self.errors = []

    def check_all(self, raise_on_error: bool = True) -> Dict[str, List[str]]:
        """
        Run all sanity checks on the circuit.

        Args:
            raise_on_error: If True, raise CircuitTopologyError when any error is found

        Returns:
            Dictionary with 'errors' and 'warnings' lists
        """
        self.warnings.clear()
        self.errors.clear()

        self._check_duplicate_ids()
        self._check_connectivity()
        self._check_voltage_source_loops()
        self._check_open_circuit_current_sources()
        self._check_capacitor_loops()
        self._check_inductor_cutsets()

        result = {
            'errors': self.errors.copy(),
            'warnings': self.warnings.copy()
        }

        if self.errors and raise_on_error:
            error_msg = "Circuit topology errors found:\n" + "\n".join(self.errors)
            raise CircuitTopologyError(error_msg)

        return result

    def _check_duplicate_ids(self):
        counts = Counter(e.comp_id for e in self.elements)
        duplicates = sorted(comp_id for comp_id, count in counts.items() if count > 1)
        if duplicates:
            self.errors.append(f"Duplicate element ids: {duplicates}")

    def _check_connectivity(self):
        """Check that every node belongs to one connected network."""
        if self.multigraph.number_of_nodes() == 0:
            return
        components = list(nx.connected_components(self.multigraph))
        if len(components) > 1:
            groups = [sorted(c) for c in components]
            self.errors.append(
                f"Network is disconnected into {len(components)} parts with nodes {groups}"
            )

    def _check_voltage_source_loops(self):
        """A voltage source that ended up a chord closes a loop of voltage sources."""
        for element in self.graph.chords:
            if element.kind is ElementKind.VOLTAGE_SOURCE:
                self.errors.append(
                    f"Voltage source '{element.comp_id}' forms a loop with other voltage sources "
                    f"(nodes {element.node_a}-{element.node_b})"
                )

    def _check_open_circuit_current_sources(self):
        """Check for current sources whose current has no return path."""
        for element in self.elements:
            if element.kind is not ElementKind.CURRENT_SOURCE:
                continue
            if not has_current_path(self.multigraph, element.node_a, element.node_b,
                                    exclude_kinds=[ElementKind.CURRENT_SOURCE]):
                self.errors.append(
                    f"Current source '{element.comp_id}' is in open circuit "
                    f"(no current path between nodes {element.node_a}-{element.node_b})"
                )

    def _check_capacitor_loops(self):
        for element in self.graph.chords:
            if element.kind is ElementKind.CAPACITOR:
                self.warnings.append(
                    f"Capacitor '{element.comp_id}' forms a loop with capacitors or voltage sources. "
                    f"Its voltage is not an independent state and gets no state equation."
                )

    def _check_inductor_cutsets(self):
        for element in self.graph.tree:
            if element.kind is ElementKind.INDUCTOR:
                self.warnings.append(
                    f"Inductor '{element.comp_id}' is only connected through inductors or current sources. "
                    f"Its current is not an independent state and gets no state equation."
                )

    def log_results(self):
        """Log the sanity check results."""
        if self.errors:
            logging.error("Circuit topology errors:")
            for error in self.errors:
                logging.error(f"  - {error}")

        if self.warnings:
            logging.warning("Circuit topology warnings:")
            for warning in self.warnings:
                logging.warning(f"  - {warning}")

        if not self.errors and not self.warnings:
            logging.info("Circuit topology checks passed successfully")
