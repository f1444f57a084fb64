import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import networkx as nx
from .components import Element, ElementKind

# Order in which non-source-current elements are offered to the spanning tree.
TREE_PRIORITY = (
    ElementKind.VOLTAGE_SOURCE,
    ElementKind.CAPACITOR,
    ElementKind.RESISTOR,
    ElementKind.INDUCTOR,
)

# Order of the chord list; any kind not listed keeps input order at the end.
CHORD_PRIORITY = (
    ElementKind.RESISTOR,
    ElementKind.INDUCTOR,
    ElementKind.CURRENT_SOURCE,
)


@dataclass(frozen=True)
class ElectricalGraph:
    """Partition of a circuit's elements into spanning-tree branches and chords.

    Attributes:
        tree: Tree branches in the order they were selected.
        chords: Chords ordered resistors, inductors, current sources, then
            any capacitor or voltage source that closed a loop.
        elements: All elements in input order.
    """
    tree: Tuple[Element, ...]
    chords: Tuple[Element, ...]
    elements: Tuple[Element, ...]
    _tree_index: Dict[str, int] = field(init=False, repr=False, compare=False)
    _chord_index: Dict[str, int] = field(init=False, repr=False, compare=False)
    _nodes: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_tree_index", {e.comp_id: i for i, e in enumerate(self.tree)})
        object.__setattr__(self, "_chord_index", {e.comp_id: i for i, e in enumerate(self.chords)})
        # dict keeps first-seen order
        seen = {}
        for element in self.elements:
            for node in element.nodes:
                seen.setdefault(node, None)
        object.__setattr__(self, "_nodes", tuple(seen))

    @property
    def nodes(self) -> Tuple[int, ...]:
        """Distinct node ids in first-seen order."""
        return self._nodes

    @property
    def is_connected(self) -> bool:
        """A spanning tree of a connected network has one branch fewer than nodes."""
        if not self.elements:
            return True
        return len(self.tree) == len(self.nodes) - 1

    def tree_index(self, element: Element) -> Optional[int]:
        return self._tree_index.get(element.comp_id)

    def chord_index(self, element: Element) -> Optional[int]:
        return self._chord_index.get(element.comp_id)

    def in_tree(self, element: Element) -> bool:
        return element.comp_id in self._tree_index

    def incident_elements(self, node: int) -> List[Element]:
        """Elements connected to ``node``, in input order."""
        return [e for e in self.elements if node in e.nodes]

    def to_networkx(self, tree_only: bool = False) -> nx.MultiGraph:
        """Build an undirected multigraph with one edge per element.

        Args:
            tree_only: Only include tree branches.

        Returns:
            nx.MultiGraph keyed by element id, each edge carrying its element.
        """
        graph = nx.MultiGraph()
        graph.add_nodes_from(self.nodes)
        for element in (self.tree if tree_only else self.elements):
            graph.add_edge(element.node_a, element.node_b, key=element.comp_id, element=element)
        return graph


class TopologyBuilder:
    """Splits a list of elements into a spanning tree and chords."""

    def build(self, elements: Sequence[Element]) -> ElectricalGraph:
        """Partition the elements.

        Current sources always become chords. The other elements are offered to
        the tree kind by kind in TREE_PRIORITY order and input order within a
        kind; an element joins the tree unless its terminals are already
        connected through the tree selected so far.

        Args:
            elements: The circuit elements in input order.

        Returns:
            ElectricalGraph: the tree/chord partition.
        """
        elements = tuple(elements)
        tree_graph = nx.MultiGraph()
        tree: List[Element] = []
        chords: List[Element] = [e for e in elements if e.kind is ElementKind.CURRENT_SOURCE]

        for kind in TREE_PRIORITY:
            for element in elements:
                if element.kind is not kind:
                    continue
                if self._connected(tree_graph, element.node_a, element.node_b):
                    chords.append(element)
                    logging.debug(f"{element.comp_id} closes a loop and becomes a chord")
                else:
                    tree_graph.add_edge(element.node_a, element.node_b, key=element.comp_id, element=element)
                    tree.append(element)
                    logging.debug(f"{element.comp_id} added to the tree")

        graph = ElectricalGraph(
            tree=tuple(tree),
            chords=tuple(self._sort_chords(chords, elements)),
            elements=elements,
        )
        logging.info(
            f"Tree: {[e.comp_id for e in graph.tree]}, chords: {[e.comp_id for e in graph.chords]}"
        )
        if not graph.is_connected:
            logging.warning(
                f"Network is not connected: {len(graph.tree)} tree branches for {len(graph.nodes)} nodes"
            )
        return graph

    @staticmethod
    def _connected(tree_graph: nx.MultiGraph, node_a: int, node_b: int) -> bool:
        if node_a not in tree_graph or node_b not in tree_graph:
            return False
        return nx.has_path(tree_graph, node_a, node_b)

    @staticmethod
    def _sort_chords(chords: List[Element], elements: Tuple[Element, ...]) -> List[Element]:
        position = {e.comp_id: i for i, e in enumerate(elements)}

        def rank(element: Element):
            if element.kind in CHORD_PRIORITY:
                kind_rank = CHORD_PRIORITY.index(element.kind)
            else:
                kind_rank = len(CHORD_PRIORITY)
            return (kind_rank, position[element.comp_id])

        return sorted(chords, key=rank)
