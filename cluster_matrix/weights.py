"""
WeightPipeline - Turns raw per-edge attribute values into usable edge weights.

The work happens in three strictly ordered passes:

1. extraction  - read the numeric attribute, track the attribute range
2. conversion  - run the injected converter, track the weight range
3. fix-up      - give edges the converter could not resolve a weight just
                 above the largest converted weight

Each pass is a plain function returning its accumulators, so the ranges are
threaded explicitly from one pass to the next.
"""
from collections import namedtuple

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from .core_utilities import TimingStats

# Returned by a converter that cannot produce a weight for a value
UNRESOLVED = None

# Attribute name meaning "no attribute": every edge gets a constant weight of 1
NONE_ATTRIBUTE = "--None--"

# -log10 stand-in for a probability of 1e-500
LOG_CEILING = 500.0

ValueRange = namedtuple("ValueRange", ["min", "max"])


def identity_converter(value, min_value, max_value):
    """Default converter: the attribute value is the weight."""
    return value


def attribute_kind(frame, attribute):
    """
    Classify an attribute column of a node or edge table.

    Returns:
    --------
    str or None
        'float', 'integer', 'other' (non-numeric), or None if the column is absent
    """
    if frame is None or attribute not in frame.columns:
        return None
    dtype = frame[attribute].dtype
    # bool is an integer subtype to numpy but not a weight
    if ptypes.is_bool_dtype(dtype):
        return 'other'
    if ptypes.is_float_dtype(dtype):
        return 'float'
    if ptypes.is_integer_dtype(dtype):
        return 'integer'
    return 'other'


def _is_unresolved(value):
    return value is UNRESOLVED or (np.ndim(value) == 0 and pd.isna(value))


def extract_attribute_values(edge_df, edge_attribute):
    """
    Pass 1: pull the numeric attribute off every edge.

    Parameters:
    -----------
    edge_df : pandas.DataFrame
        One row per edge
    edge_attribute : str
        Column holding the raw weight, or NONE_ATTRIBUTE

    Returns:
    --------
    values : numpy.ndarray
        float64, NaN where the edge has no usable value
    constant_mask : numpy.ndarray
        bool, True for edges given the constant weight 1.0
    attribute_range : ValueRange or None
        Range over all usable numeric values
    """
    n_edges = 0 if edge_df is None else len(edge_df)
    values = np.full(n_edges, np.nan, dtype=np.float64)
    constant_mask = np.zeros(n_edges, dtype=bool)
    constant_mode = edge_attribute == NONE_ATTRIBUTE

    kind = attribute_kind(edge_df, edge_attribute)
    if kind is None:
        if constant_mode:
            values[:] = 1.0
            constant_mask[:] = True
        return values, constant_mask, None

    if kind == 'other':
        # Non-numeric attributes are ignored, not fatal
        return values, constant_mask, None

    raw = edge_df[edge_attribute].to_numpy(dtype=np.float64, na_value=np.nan)
    present = ~np.isnan(raw)
    values[present] = raw[present]
    if constant_mode:
        values[~present] = 1.0
        constant_mask[~present] = True

    if not present.any():
        return values, constant_mask, None
    return values, constant_mask, ValueRange(float(raw[present].min()), float(raw[present].max()))


def convert_weights(values, constant_mask, attribute_range, converter):
    """
    Pass 2: run the converter over every resolved, non-constant value.

    Returns:
    --------
    weights : numpy.ndarray
        Converted weights; NaN for unresolved edges and collisions
    collisions : numpy.ndarray
        Indices of edges the converter returned UNRESOLVED for
    weight_range : ValueRange or None
        Range over the successfully converted weights
    """
    weights = values.copy()
    if attribute_range is None:
        min_attribute = max_attribute = np.nan
    else:
        min_attribute, max_attribute = attribute_range

    collisions = []
    min_weight = np.inf
    max_weight = -np.inf
    for idx in np.flatnonzero(~np.isnan(values) & ~constant_mask):
        converted = converter(float(values[idx]), min_attribute, max_attribute)
        if _is_unresolved(converted):
            collisions.append(idx)
            weights[idx] = np.nan
            continue
        converted = float(converted)
        weights[idx] = converted
        min_weight = min(min_weight, converted)
        max_weight = max(max_weight, converted)

    if max_weight >= min_weight:
        weight_range = ValueRange(min_weight, max_weight)
    elif constant_mask.any():
        weight_range = ValueRange(1.0, 1.0)
    else:
        weight_range = None
    return weights, np.array(collisions, dtype=np.int64), weight_range


def fix_collisions(weights, collisions, weight_range):
    """
    Pass 3: place every collision just above the largest converted weight.

    Must run after pass 2 has seen the whole edge set.
    """
    fixed = weights.copy()
    if len(collisions) == 0:
        return fixed
    max_weight = weight_range.max if weight_range is not None else 0.0
    fixed[collisions] = max_weight + max_weight / 10.0
    return fixed


class WeightPipeline:
    """
    Computes one weight per edge from an edge attribute.

    The weight array is computed once at construction and never changes.
    """

    def __init__(self, edge_df, edge_attribute, converter=None,
                 distance_values=False, log_values=False, verbose=False):
        """
        Parameters:
        -----------
        edge_df : pandas.DataFrame
            One row per edge
        edge_attribute : str
            Column holding the raw weight, or NONE_ATTRIBUTE for constant weights
        converter : callable, optional
            convert(value, min_attribute, max_attribute) -> float or UNRESOLVED.
            Defaults to identity_converter.
        distance_values : bool, default=False
            scale_value inverts values (similarity <-> distance)
        log_values : bool, default=False
            scale_value applies a -log10 transform
        verbose : bool, default=False
            Whether to print progress messages
        """
        self.edge_attribute = edge_attribute
        self.converter = converter if converter is not None else identity_converter
        self.distance_values = distance_values
        self.log_values = log_values
        self.verbose = verbose
        self.timing = TimingStats()

        with self.timing.timed("weights.extract", verbose):
            values, constant_mask, self._attribute_range = extract_attribute_values(
                edge_df, edge_attribute)
        with self.timing.timed("weights.convert", verbose):
            weights, self._collisions, self._weight_range = convert_weights(
                values, constant_mask, self._attribute_range, self.converter)
        with self.timing.timed("weights.fix_collisions", verbose):
            self._edge_weights = fix_collisions(weights, self._collisions, self._weight_range)
        self._edge_weights.setflags(write=False)

        if self.verbose:
            n_unresolved = int(np.isnan(self._edge_weights).sum())
            print(f"Computed {len(self._edge_weights)} edge weights from '{edge_attribute}': "
                  f"{int(constant_mask.sum())} constant, {len(self._collisions)} collisions, "
                  f"{n_unresolved} without a usable value")
            print(f"  attribute range: {self._attribute_range}, weight range: {self._weight_range}")

    def get_edge_weights(self):
        """Final weight per edge (a copy); NaN marks edges with no usable value."""
        return self._edge_weights.copy()

    def get_attribute_range(self):
        return self._attribute_range

    def get_weight_range(self):
        return self._weight_range

    def get_collisions(self):
        """Indices of the edges patched in pass 3"""
        return self._collisions.copy()

    def get_min_attribute(self):
        return None if self._attribute_range is None else self._attribute_range.min

    def get_max_attribute(self):
        return None if self._attribute_range is None else self._attribute_range.max

    def get_min_weight(self):
        return None if self._weight_range is None else self._weight_range.min

    def get_max_weight(self):
        return None if self._weight_range is None else self._weight_range.max

    def has_distance_values(self):
        return self.distance_values

    def has_log_values(self):
        return self.log_values

    def get_normalized_value(self, value):
        """Position of value within the weight range, 0 at min and 1 at max."""
        if self._weight_range is None:
            return np.nan
        span = self._weight_range.max - self._weight_range.min
        if span == 0:
            return 1.0
        return (value - self._weight_range.min) / span

    def scale_values(self, values):
        """
        Vectorized scale_value.

        Parameters:
        -----------
        values : array-like
            Weights to transform

        Returns:
        --------
        numpy.ndarray
        """
        scaled = np.array(values, dtype=np.float64)
        if self.distance_values:
            with np.errstate(divide='ignore'):
                scaled = np.where(scaled != 0.0, 1.0 / scaled, np.inf)

        if self.log_values:
            min_attribute = self.get_min_attribute()
            if min_attribute is not None and min_attribute < 0.0:
                scaled = scaled + abs(min_attribute)
            finite = (scaled != 0.0) & (scaled != np.inf)
            logged = np.full_like(scaled, LOG_CEILING)
            with np.errstate(invalid='ignore'):
                logged[finite] = -np.log10(scaled[finite])
            scaled = logged
        return scaled

    def scale_value(self, value):
        """
        Optionally invert and/or -log10 transform a single weight.

        Inversion maps 0 to +inf. The log transform shifts by |min_attribute|
        when the attribute range dips below zero, and maps 0 or +inf to LOG_CEILING.
        """
        return float(self.scale_values([value])[0])

    def __repr__(self):
        return (f"WeightPipeline('{self.edge_attribute}', {len(self._edge_weights)} edges, "
                f"weight range {self._weight_range})")
