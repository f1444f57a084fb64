import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import networkx as nx
import numpy as np
from .components import Element, meets_at
from .electrical_graph import ElectricalGraph


@dataclass(frozen=True)
class FundamentalLoop:
    """The loop closed by one chord through the spanning tree.

    ``path`` runs from the chord's ``node_b`` back to its ``node_a`` and
    ``signs`` holds the loop-matrix entry of each branch on it. ``closed`` is
    False when the chord's terminals lie in different tree components.
    """
    chord: Element
    path: Tuple[Element, ...]
    signs: Tuple[int, ...]
    node_sequence: Tuple[int, ...]
    closed: bool


@dataclass(frozen=True)
class LoopMatrix:
    """Signed chords x tree incidence of the fundamental loops.

    Row i belongs to ``chords[i]`` and satisfies
    ``u_chord + sum_j M[i, j] * u_tree_j = 0``. Column j belongs to
    ``tree[j]`` and satisfies ``i_tree_j = sum_i M[i, j] * i_chord_i``.
    """
    matrix: np.ndarray
    chords: Tuple[Element, ...]
    tree: Tuple[Element, ...]
    loops: Tuple[FundamentalLoop, ...]

    def __post_init__(self):
        matrix = np.array(self.matrix, dtype=float)
        matrix.flags.writeable = False
        object.__setattr__(self, "matrix", matrix)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def __getitem__(self, key):
        return self.matrix[key]

    def loop_for(self, chord: Element) -> FundamentalLoop:
        for loop in self.loops:
            if loop.chord == chord:
                return loop
        raise KeyError(f"'{chord.comp_id}' is not a chord")

    def linked_tree(self, chord: Element) -> List[Tuple[Element, int]]:
        """Tree branches on the chord's fundamental loop with their signs."""
        row = self.chords.index(chord)
        return [(self.tree[j], int(self.matrix[row, j])) for j in np.flatnonzero(self.matrix[row])]

    def linked_chords(self, branch: Element) -> List[Tuple[Element, int]]:
        """Chords whose fundamental loop passes through the tree branch."""
        column = self.tree.index(branch)
        return [(self.chords[i], int(self.matrix[i, column])) for i in np.flatnonzero(self.matrix[:, column])]


class LoopMatrixBuilder:
    """Builds the fundamental-loop sign matrix of an ElectricalGraph."""

    def build(self, graph: ElectricalGraph) -> LoopMatrix:
        """Walk each chord's loop through the tree and record branch signs.

        Args:
            graph: Tree/chord partition produced by TopologyBuilder.

        Returns:
            LoopMatrix: read-only matrix plus the per-chord loops.
        """
        matrix = np.zeros((len(graph.chords), len(graph.tree)))
        if not graph.chords or not graph.tree:
            logging.debug(f"Loop matrix is empty with shape {matrix.shape}")

        tree_graph = graph.to_networkx(tree_only=True)
        column = {e.comp_id: j for j, e in enumerate(graph.tree)}
        loops = []
        for i, chord in enumerate(graph.chords):
            loop = self._fundamental_loop(tree_graph, chord)
            for branch, sign in zip(loop.path, loop.signs):
                matrix[i, column[branch.comp_id]] = sign
            logging.debug(
                f"Loop of {chord.comp_id}: "
                f"{[f'{b.comp_id}:{s:+d}' for b, s in zip(loop.path, loop.signs)]}"
            )
            loops.append(loop)

        return LoopMatrix(matrix=matrix, chords=graph.chords, tree=graph.tree, loops=tuple(loops))

    def _fundamental_loop(self, tree_graph: nx.MultiGraph, chord: Element) -> FundamentalLoop:
        nodes = self._tree_path(tree_graph, chord.node_b, chord.node_a)
        if nodes is None:
            logging.warning(f"Chord {chord.comp_id} does not close a loop through the tree")
            return FundamentalLoop(chord=chord, path=(), signs=(), node_sequence=(), closed=False)

        path = []
        for start, end in zip(nodes, nodes[1:]):
            # tree branches never run in parallel, so each hop has one edge
            edge = next(iter(tree_graph.get_edge_data(start, end).values()))
            path.append(edge["element"])

        return FundamentalLoop(
            chord=chord,
            path=tuple(path),
            signs=tuple(self._orient(chord, path)),
            node_sequence=tuple(nodes),
            closed=True,
        )

    @staticmethod
    def _tree_path(tree_graph: nx.MultiGraph, start: int, end: int) -> Optional[List[int]]:
        if start not in tree_graph or end not in tree_graph:
            return None
        try:
            return nx.shortest_path(tree_graph, start, end)
        except nx.NetworkXNoPath:
            return None

    @staticmethod
    def _orient(chord: Element, path: Sequence[Element]) -> List[int]:
        """Sign of each branch relative to the chord's direction.

        Neighbouring loop elements that meet at their shared node run the same
        way around the loop, neighbours that diverge run opposite ways.
        """
        signs = []
        previous, previous_sign, node = chord, 1, chord.node_b
        for branch in path:
            sign = previous_sign if meets_at(previous, branch, node) else -previous_sign
            signs.append(sign)
            node = branch.node_b if branch.node_a == node else branch.node_a
            previous, previous_sign = branch, sign
        return signs
