"""
SparseGraphMatrix - Sparse node x node matrix of edge weights.

Weights come from a WeightPipeline. The matrix is built lazily and rebuilt
whenever the cutoff or the undirected flag changes.
"""
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.sparse import coo_matrix, csr_matrix

from .components import find_connected_components
from .core_utilities import TimingStats
from .weights import WeightPipeline


@dataclass
class MatrixConfig:
    edge_cutoff: float = 0.0
    undirected_edges: bool = False
    distance_values: bool = False      # scale_value inverts weights
    log_values: bool = False           # scale_value applies -log10


def build_sparse_matrix(n_nodes, source_index, target_index, weights,
                        edge_cutoff=0.0, undirected_edges=False):
    """
    Build the weight matrix from per-edge endpoints and weights.

    Parameters:
    -----------
    n_nodes : int
        Matrix dimension
    source_index, target_index : array-like of int
        Endpoint positions in the node ordering, one per edge
    weights : array-like of float
        Edge weights; NaN weights are never stored
    edge_cutoff : float, default=0.0
        Edges with weight below the cutoff are left out
    undirected_edges : bool, default=False
        Also store each weight at (source, target)

    Returns:
    --------
    scipy.sparse.csr_matrix
        matrix[target, source] = weight; when several edges hit the same
        cell the last one in edge order wins
    """
    source_index = np.asarray(source_index, dtype=np.int64)
    target_index = np.asarray(target_index, dtype=np.int64)
    weights = np.asarray(weights, dtype=np.float64)

    keep = ~np.isnan(weights) & (weights >= edge_cutoff)
    src, tgt, vals = source_index[keep], target_index[keep], weights[keep]

    if undirected_edges:
        # interleave so edge k writes (t, s) then (s, t) before edge k+1
        rows = np.column_stack([tgt, src]).ravel()
        cols = np.column_stack([src, tgt]).ravel()
        vals = np.repeat(vals, 2)
    else:
        rows, cols = tgt, src

    # keep the last write per cell
    keys = rows * n_nodes + cols
    _, last_rev = np.unique(keys[::-1], return_index=True)
    last = len(keys) - 1 - last_rev
    matrix = coo_matrix((vals[last], (rows[last], cols[last])),
                        shape=(n_nodes, n_nodes)).tocsr()
    matrix.eliminate_zeros()
    return matrix


class SparseGraphMatrix:
    """
    Edge-weight matrix over a node ordering.
    """

    def __init__(self, nodes, edge_df, edge_attribute, converter=None,
                 config=None, source_col="source", target_col="target",
                 verbose=False):
        """
        Parameters:
        -----------
        nodes : sequence, pandas.Index or pandas.DataFrame
            Node labels in matrix order; a DataFrame contributes its index
        edge_df : pandas.DataFrame
            One row per edge with source/target label columns and attribute columns
        edge_attribute : str
            Attribute column used as raw weight, or NONE_ATTRIBUTE
        converter : callable, optional
            convert(value, min_attribute, max_attribute) -> float or UNRESOLVED
        config : MatrixConfig, optional
            Cutoff, undirected flag and scaling flags
        source_col, target_col : str
            Endpoint column names in edge_df
        verbose : bool, default=False
            Whether to print progress messages
        """
        self.config = config if config is not None else MatrixConfig()
        self.verbose = verbose
        self.timing = TimingStats()

        if isinstance(nodes, pd.DataFrame):
            nodes = nodes.index
        self.nodes = pd.Index(nodes)
        if not self.nodes.is_unique:
            raise ValueError("Node labels must be unique")
        self.edge_df = edge_df if edge_df is not None else pd.DataFrame(columns=[source_col, target_col])
        self.n_nodes = len(self.nodes)

        self.source_index = self._resolve_endpoints(source_col)
        self.target_index = self._resolve_endpoints(target_col)

        self.pipeline = WeightPipeline(self.edge_df, edge_attribute, converter=converter,
                                       distance_values=self.config.distance_values,
                                       log_values=self.config.log_values,
                                       verbose=verbose)
        self._matrix = None
        self._dirty = True

    def _resolve_endpoints(self, column):
        if len(self.edge_df) == 0:
            return np.zeros(0, dtype=np.int64)
        index = self.nodes.get_indexer(self.edge_df[column])
        if np.any(index < 0):
            unknown = self.edge_df[column][index < 0].unique()[:5]
            raise ValueError(f"Edge {column} labels not in node list: {list(unknown)}")
        return index.astype(np.int64)

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------

    def set_edge_cutoff(self, edge_cutoff):
        self.config.edge_cutoff = float(edge_cutoff)
        self._dirty = True

    def set_undirected_edges(self, undirected_edges):
        self.config.undirected_edges = bool(undirected_edges)
        self._dirty = True

    def get_edge_cutoff(self):
        return self.config.edge_cutoff

    def is_undirected(self):
        return self.config.undirected_edges

    # ------------------------------------------------------------------
    # matrix
    # ------------------------------------------------------------------

    def get_matrix(self, edge_cutoff=None, undirected_edges=None):
        """
        The weight matrix, built on first access or after a settings change.

        Passing edge_cutoff or undirected_edges updates that setting and forces
        a rebuild.

        Returns:
        --------
        scipy.sparse.csr_matrix
        """
        if edge_cutoff is not None:
            self.set_edge_cutoff(edge_cutoff)
        if undirected_edges is not None:
            self.set_undirected_edges(undirected_edges)
        if self._dirty or self._matrix is None:
            with self.timing.timed("matrix.build", self.verbose):
                self._matrix = build_sparse_matrix(
                    self.n_nodes, self.source_index, self.target_index,
                    self.pipeline.get_edge_weights(),
                    self.config.edge_cutoff, self.config.undirected_edges)
            self._dirty = False
            if self.verbose:
                print(f"Built {self.n_nodes}x{self.n_nodes} matrix with {self._matrix.nnz} entries "
                      f"(cutoff={self.config.edge_cutoff}, undirected={self.config.undirected_edges})")
        return self._matrix

    def get_value(self, row, col):
        """Stored value at (row, col), 0.0 if absent"""
        for idx in (row, col):
            if idx < 0 or idx >= self.n_nodes:
                raise ValueError(f"Node index {idx} out of range [0, {self.n_nodes-1}]")
        return float(self.get_matrix()[row, col])

    def normalize(self, factor=1.0):
        """
        Rescale every stored entry against the full weight range.

        value -> ((value - min_weight) / (max_weight - min_weight)) * factor.
        The range is the pre-cutoff range of all edges, not of the stored entries.
        """
        matrix = self.get_matrix()
        weight_range = self.pipeline.get_weight_range()
        if weight_range is None or matrix.nnz == 0:
            return matrix
        span = weight_range.max - weight_range.min
        if span == 0:
            matrix.data[:] = factor
        else:
            matrix.data = ((matrix.data - weight_range.min) / span) * factor
        matrix.eliminate_zeros()
        return matrix

    def adjust_diagonals(self):
        """
        Set each diagonal entry to the max off-diagonal value of its column,
        or to 1.0 when that max is 0.
        """
        matrix = self.get_matrix()
        if self.n_nodes == 0:
            return matrix
        coo = matrix.tocoo()
        off_diagonal = coo.row != coo.col

        # every column max is taken before any diagonal is written
        col_max = np.zeros(self.n_nodes, dtype=np.float64)
        np.maximum.at(col_max, coo.col[off_diagonal], coo.data[off_diagonal])
        diagonal = np.where(col_max != 0.0, col_max, 1.0)

        stripped = coo_matrix((coo.data[off_diagonal],
                               (coo.row[off_diagonal], coo.col[off_diagonal])),
                              shape=matrix.shape)
        self._matrix = csr_matrix(stripped + sparse.diags(diagonal, format="coo"))
        return self._matrix

    def scale_matrix(self):
        """Apply scale_value to every stored entry."""
        matrix = self.get_matrix()
        matrix.data = self.pipeline.scale_values(matrix.data)
        matrix.eliminate_zeros()
        return matrix

    def find_connected_components(self):
        """
        Connected components of the current matrix.

        Returns:
        --------
        dict
            component id -> list of node labels
        """
        with self.timing.timed("matrix.components", self.verbose):
            return find_connected_components(self.get_matrix(), self.nodes)

    # ------------------------------------------------------------------
    # pass-throughs
    # ------------------------------------------------------------------

    def get_nodes(self):
        return self.nodes

    def get_edges(self):
        return self.edge_df

    def get_edge_weights(self):
        return self.pipeline.get_edge_weights()

    def get_attribute_range(self):
        return self.pipeline.get_attribute_range()

    def get_weight_range(self):
        return self.pipeline.get_weight_range()

    def get_min_weight(self):
        return self.pipeline.get_min_weight()

    def get_max_weight(self):
        return self.pipeline.get_max_weight()

    def get_min_attribute(self):
        return self.pipeline.get_min_attribute()

    def get_max_attribute(self):
        return self.pipeline.get_max_attribute()

    def scale_value(self, value):
        return self.pipeline.scale_value(value)

    def get_normalized_value(self, value):
        return self.pipeline.get_normalized_value(value)

    # ------------------------------------------------------------------
    # diagnostics
    # ------------------------------------------------------------------

    def matrix_info(self, matrix=None):
        """Dimensions, storage kind and cardinality of a matrix (default: ours)"""
        m = self.get_matrix() if matrix is None else matrix
        kind = "sparse" if sparse.issparse(m) else "dense"
        cardinality = m.count_nonzero() if sparse.issparse(m) else int(np.count_nonzero(m))
        return f"Matrix({m.shape[0]}, {m.shape[1]})\n matrix is {kind}\n cardinality is {cardinality}"

    def print_matrix_info(self, matrix=None):
        print(self.matrix_info(matrix))

    def print_matrix(self, matrix=None):
        """Print one line per row: node label, then every cell tab-separated"""
        m = self.get_matrix() if matrix is None else matrix
        dense = m.toarray() if sparse.issparse(m) else np.asarray(m)
        for row in range(dense.shape[0]):
            print(f"{self.nodes[row]}:\t" + "\t".join(str(v) for v in dense[row]))

    def __str__(self):
        state = "not built" if self._dirty or self._matrix is None else f"{self._matrix.nnz} entries"
        return (f"SparseGraphMatrix with {self.n_nodes} nodes, {len(self.edge_df)} edges, "
                f"{state}")

    def __repr__(self):
        return self.__str__()
