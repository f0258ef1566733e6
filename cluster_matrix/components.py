"""
Connected components over the non-zero entries of a graph matrix.

Uses an arena-indexed union-find (union by size, path compression) compiled
with numba. The partition does not depend on the order entries are visited.
"""
import numpy as np
import pandas as pd
from scipy import sparse
from numba import njit


@njit
def _find(parent, i):
    root = i
    while parent[root] != root:
        root = parent[root]
    # path compression
    while parent[i] != root:
        nxt = parent[i]
        parent[i] = root
        i = nxt
    return root


@njit
def _union(parent, size, seen, a, b):
    if a == b:
        return
    seen[a] = True
    seen[b] = True
    ra = _find(parent, a)
    rb = _find(parent, b)
    if ra == rb:
        return
    if size[ra] < size[rb]:
        ra, rb = rb, ra
    parent[rb] = ra
    size[ra] += size[rb]


@njit
def _union_entries(parent, size, seen, rows, cols):
    for k in range(rows.shape[0]):
        _union(parent, size, seen, rows[k], cols[k])


@njit
def _resolve_roots(parent, seen):
    n = parent.shape[0]
    roots = np.full(n, -1, dtype=np.int64)
    for i in range(n):
        if seen[i]:
            roots[i] = _find(parent, i)
    return roots


class ComponentFinder:
    """
    Incrementally partitions nodes into connected components.

    Feed entries with visit() or a whole matrix with scan(), then read the
    partition with component_map(). Diagonal entries never join components.
    """

    def __init__(self, nodes):
        """
        Parameters:
        -----------
        nodes : sequence or pandas.Index
            Node labels; position i labels matrix row/column i
        """
        self.nodes = pd.Index(nodes)
        n = len(self.nodes)
        self._parent = np.arange(n, dtype=np.int64)
        self._size = np.ones(n, dtype=np.int64)
        self._seen = np.zeros(n, dtype=bool)

    def _check_index(self, idx):
        if idx < 0 or idx >= len(self.nodes):
            raise ValueError(f"Node index {idx} out of range [0, {len(self.nodes)-1}]")

    def visit(self, row, col):
        """Record one non-zero entry (row, col)."""
        self._check_index(row)
        self._check_index(col)
        _union(self._parent, self._size, self._seen, np.int64(row), np.int64(col))

    def scan(self, matrix):
        """
        Record every stored non-zero entry of a matrix.

        Parameters:
        -----------
        matrix : scipy.sparse matrix or numpy.ndarray
            Square matrix over the node ordering
        """
        if matrix.shape[0] != len(self.nodes) or matrix.shape[1] != len(self.nodes):
            raise ValueError(f"Matrix shape {matrix.shape} does not match {len(self.nodes)} nodes")
        coo = sparse.coo_matrix(matrix)
        nonzero = coo.data != 0
        rows = coo.row[nonzero].astype(np.int64)
        cols = coo.col[nonzero].astype(np.int64)
        _union_entries(self._parent, self._size, self._seen, rows, cols)
        return self

    def component_labels(self):
        """Root index per node, -1 for nodes outside every component"""
        return _resolve_roots(self._parent, self._seen)

    def component_map(self):
        """
        Current partition.

        Returns:
        --------
        dict
            component id -> list of node labels. Ids are 0..k-1 ordered by each
            component's smallest node index; members are in node order.
        """
        roots = self.component_labels()
        members = {}
        for idx in np.flatnonzero(roots >= 0):
            members.setdefault(roots[idx], []).append(self.nodes[idx])
        return {cid: nodes for cid, nodes in enumerate(members.values())}

    def n_components(self):
        roots = self.component_labels()
        return len(np.unique(roots[roots >= 0]))


def find_connected_components(matrix, nodes):
    """
    Partition nodes by the non-self, non-zero entries of matrix.

    Parameters:
    -----------
    matrix : scipy.sparse matrix or numpy.ndarray
    nodes : sequence
        Node labels in matrix order

    Returns:
    --------
    dict
        component id -> list of node labels
    """
    return ComponentFinder(nodes).scan(matrix).component_map()
