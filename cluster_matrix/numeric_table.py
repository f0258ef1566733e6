"""
NumericTable - Dense 2-D table of optional values with labels and weights.

Missing cells are NaN and are skipped by rank computation; a missing cell
means "no value", not zero.
"""
import numpy as np
import pandas as pd
from scipy.stats import rankdata

from .core_utilities import make_pairwise_batcher, upper_triangle_pairs
from .weights import attribute_kind

_batchers = {}


def _to_float_array(data):
    return np.array([np.nan if pd.isna(v) else float(v) for v in data], dtype=np.float64)


def _sorted_labels(labels):
    # nodes are ordered by the string form of their label
    return sorted(labels, key=str)


class NumericTable:
    """
    rows x columns table of nullable floats, plus per-row and per-column
    labels and weights.
    """

    def __init__(self, rows=0, cols=0):
        """
        Parameters:
        -----------
        rows, cols : int
            Table dimensions; every cell starts out missing
        """
        self._init(rows, cols)

    def _init(self, rows, cols):
        self._n_rows = rows
        self._n_columns = cols
        self.values = np.full((rows, cols), np.nan, dtype=np.float64)
        self.row_labels = [None] * rows
        self.col_labels = [None] * cols
        self.row_weights = np.ones(rows, dtype=np.float64)
        self.col_weights = np.ones(cols, dtype=np.float64)
        self.max_attribute = 0.0
        self.transposed = False
        self.symmetrical = False

    @classmethod
    def from_data(cls, data, rows=0, cols=0):
        """
        Build a table from a flat array in row-major order.

        Parameters:
        -----------
        data : sequence
            Cell values; None/NaN become missing cells
        rows : int, default=0
            Number of rows, 0 to derive it from cols
        cols : int, default=0
            Number of columns, 0 to derive it from rows

        Raises:
        -------
        ValueError
            If the dimensions do not conform with the data length
        """
        flat = _to_float_array(data)
        if rows == 0 and cols == 0:
            raise ValueError("At least one of rows or cols must be specified")
        if rows == 0:
            rows = len(flat) // cols
        if cols == 0:
            cols = len(flat) // rows
        if rows * cols != len(flat):
            raise ValueError(f"Data array length {len(flat)} does not conform "
                             f"with specified matrix dimension {rows}x{cols}")

        table = cls(rows, cols)
        table.values = flat.reshape(rows, cols)
        return table

    @classmethod
    def from_node_attributes(cls, node_df, attributes, transpose=False, ignore_missing=False):
        """
        Expression-profile table: one row per node, one column per attribute.

        Parameters:
        -----------
        node_df : pandas.DataFrame
            Indexed by node label
        attributes : list of str
            Attribute columns; non-numeric ones are skipped
        transpose : bool, default=False
            Put attributes on rows and nodes on columns
        ignore_missing : bool, default=False
            Drop nodes that have no value for any attribute
        """
        numeric = [a for a in attributes if attribute_kind(node_df, a) in ('float', 'integer')]
        order = _sorted_labels(node_df.index)
        values = node_df.loc[order, numeric].to_numpy(dtype=np.float64, na_value=np.nan)

        if ignore_missing:
            keep = ~np.isnan(values).all(axis=1) if numeric else np.zeros(len(order), dtype=bool)
            values = values[keep]
            order = [label for label, k in zip(order, keep) if k]

        if transpose:
            table = cls(len(numeric), len(order))
            table.values = values.T.copy()
            table.row_labels = list(numeric)
            table.col_labels = list(order)
        else:
            table = cls(len(order), len(numeric))
            table.values = values
            table.row_labels = list(order)
            table.col_labels = list(numeric)
        table.transposed = transpose
        return table

    @classmethod
    def from_edge_attributes(cls, nodes, edge_df, attribute, ignore_missing=False,
                             source_col="source", target_col="target"):
        """
        Symmetrical node x node table from an edge attribute.

        Both (source, target) and (target, source) receive the edge value.
        max_attribute is set to the largest value seen.

        Parameters:
        -----------
        nodes : sequence or pandas.Index
            Node labels
        edge_df : pandas.DataFrame
            One row per edge
        attribute : str
            Numeric edge attribute
        ignore_missing : bool, default=False
            Drop nodes without any valued edge from rows and columns

        Raises:
        -------
        ValueError
            If an edge endpoint is not in nodes
        """
        order = _sorted_labels(pd.Index(nodes))
        position = {label: i for i, label in enumerate(order)}
        n = len(order)
        values = np.full((n, n), np.nan, dtype=np.float64)

        for column in (source_col, target_col):
            unknown = [label for label in edge_df[column].unique() if label not in position]
            if unknown:
                raise ValueError(f"Edge {column} labels not in node list: {unknown[:5]}")

        max_attribute = 0.0
        if attribute_kind(edge_df, attribute) in ('float', 'integer'):
            raw = edge_df[attribute].to_numpy(dtype=np.float64, na_value=np.nan)
            present = raw[~np.isnan(raw)]
            if len(present):
                max_attribute = float(present.max())
            for src, tgt, val in zip(edge_df[source_col], edge_df[target_col], raw):
                if np.isnan(val):
                    continue
                s, t = position[src], position[tgt]
                values[s, t] = val
                values[t, s] = val

        if ignore_missing:
            keep = ~np.isnan(values).all(axis=1)
            values = values[np.ix_(keep, keep)]
            order = [label for label, k in zip(order, keep) if k]

        table = cls(len(order), len(order))
        table.values = values
        table.row_labels = list(order)
        table.col_labels = list(order)
        table.max_attribute = max_attribute
        table.symmetrical = True
        return table

    def copy(self):
        duplicate = NumericTable(self._n_rows, self._n_columns)
        duplicate.values = self.values.copy()
        duplicate.row_labels = list(self.row_labels)
        duplicate.col_labels = list(self.col_labels)
        duplicate.row_weights = self.row_weights.copy()
        duplicate.col_weights = self.col_weights.copy()
        duplicate.max_attribute = self.max_attribute
        duplicate.transposed = self.transposed
        duplicate.symmetrical = self.symmetrical
        return duplicate

    # ------------------------------------------------------------------
    # cells
    # ------------------------------------------------------------------

    def n_rows(self):
        return self._n_rows

    def n_columns(self):
        return self._n_columns

    def get_value(self, row, col):
        """Cell value, or None if missing"""
        value = self.values[row, col]
        return None if np.isnan(value) else float(value)

    def double_value(self, row, col):
        """Cell value, NaN if missing"""
        return float(self.values[row, col])

    def set_value(self, row, col, value):
        self.values[row, col] = np.nan if value is None else value

    def has_value(self, row, col):
        return not np.isnan(self.values[row, col])

    # ------------------------------------------------------------------
    # weights and labels
    # ------------------------------------------------------------------

    def set_uniform_weights(self):
        self.row_weights = np.ones(self._n_rows, dtype=np.float64)
        self.col_weights = np.ones(self._n_columns, dtype=np.float64)

    def get_row_weights(self):
        return self.row_weights

    def get_row_weight(self, row):
        return self.row_weights[row]

    def set_row_weight(self, row, value):
        self.row_weights[row] = value

    def get_col_weights(self):
        return self.col_weights

    def get_col_weight(self, col):
        return self.col_weights[col]

    def set_col_weight(self, col, value):
        self.col_weights[col] = value

    def get_weights(self):
        """Weights handed to distance metrics (the column weights)"""
        return self.col_weights

    def get_row_labels(self):
        return self.row_labels

    def get_row_label(self, row):
        return self.row_labels[row]

    def set_row_label(self, row, label):
        self.row_labels[row] = label

    def get_col_labels(self):
        return self.col_labels

    def get_col_label(self, col):
        return self.col_labels[col]

    def set_col_label(self, col, label):
        self.col_labels[col] = label

    def is_transposed(self):
        return self.transposed

    def is_symmetrical(self):
        return self.symmetrical

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    @staticmethod
    def index_sort(values):
        """Stable ascending argsort"""
        return np.argsort(np.asarray(values), kind='stable')

    def get_rank(self, row):
        """
        Mid-ranks of the row's present values.

        Ranks run from 0 to k-1 over the k present values, in column order; a
        run of m tied values starting at sorted position i all get i + (m-1)/2.

        Returns:
        --------
        numpy.ndarray or None
            None if the row has no present value
        """
        row_values = self.values[row]
        present = row_values[~np.isnan(row_values)]
        if len(present) == 0:
            return None
        return rankdata(present, method='average') - 1.0

    def get_distance_matrix(self, metric):
        """
        Symmetric row x row distance matrix.

        Parameters:
        -----------
        metric : callable
            metric(table_a, table_b, weights, i, j) -> float, assumed symmetric

        Returns:
        --------
        numpy.ndarray
            n_rows x n_rows
        """
        n = self._n_rows
        result = np.zeros((n, n), dtype=np.float64)
        weights = self.get_weights()
        for row in range(n):
            for col in range(row, n):
                result[row, col] = metric(self, self, weights, row, col)
                result[col, row] = result[row, col]
        return result

    def get_feature_distance_matrix(self, dist_func):
        """
        Same fill as get_distance_matrix for a numba-compiled row metric.

        Parameters:
        -----------
        dist_func : numba.core.registry.CPUDispatcher
            @njit dist_func(values, weights, i, j) -> float over the raw value
            array (NaN for missing cells)

        Returns:
        --------
        numpy.ndarray
            n_rows x n_rows
        """
        if dist_func not in _batchers:
            _batchers[dist_func] = make_pairwise_batcher(dist_func)
        n = self._n_rows
        idx_i, idx_j = upper_triangle_pairs(n)
        out = _batchers[dist_func](np.ascontiguousarray(self.values),
                                   np.ascontiguousarray(self.get_weights()),
                                   idx_i, idx_j)
        result = np.zeros((n, n), dtype=np.float64)
        result[idx_i, idx_j] = out
        result[idx_j, idx_i] = out
        return result

    def set_missing_to_zero(self):
        """Replace every missing cell with 0.0. Missingness is lost."""
        self.values[np.isnan(self.values)] = 0.0

    def adjust_diagonals(self):
        """Set every diagonal cell to max_attribute."""
        for col in range(min(self._n_rows, self._n_columns)):
            self.values[col, col] = self.max_attribute

    def to_frame(self):
        return pd.DataFrame(self.values, index=self.row_labels, columns=self.col_labels)

    def print_matrix(self):
        """Tab-separated dump with column labels on top; missing cells are blank"""
        print("\t" + "\t".join(str(label) for label in self.col_labels))
        for row in range(self._n_rows):
            cells = ["" if np.isnan(v) else str(v) for v in self.values[row]]
            print(f"{self.row_labels[row]}\t" + "\t".join(cells))

    def __str__(self):
        return f"NumericTable with {self._n_rows} rows, {self._n_columns} columns"

    def __repr__(self):
        return self.__str__()
