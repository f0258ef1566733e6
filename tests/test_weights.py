"""
Tests for the three-pass edge weight pipeline.
"""

import numpy as np
import pandas as pd
import pytest

from cluster_matrix.weights import (
    LOG_CEILING,
    NONE_ATTRIBUTE,
    UNRESOLVED,
    ValueRange,
    WeightPipeline,
    attribute_kind,
    convert_weights,
    extract_attribute_values,
    fix_collisions,
)


# ------------------------------------------------------------------
# pass 1: extraction
# ------------------------------------------------------------------


def test_attribute_kind(edge_df):
    assert attribute_kind(edge_df, "score") == "float"
    assert attribute_kind(edge_df, "count") == "integer"
    assert attribute_kind(edge_df, "label") == "other"
    assert attribute_kind(edge_df, "missing") is None
    assert attribute_kind(pd.DataFrame({"flag": [True, False]}), "flag") == "other"


def test_extract_float_attribute_skips_missing_cells(edge_df):
    values, constant, attr_range = extract_attribute_values(edge_df, "score")

    np.testing.assert_array_equal(values[[0, 1, 2, 4]], [1.0, 2.0, 3.0, 5.0])
    assert np.isnan(values[3])
    assert not constant.any()
    assert attr_range == ValueRange(1.0, 5.0)


def test_extract_nullable_integer_attribute():
    edges = pd.DataFrame({"w": pd.array([4, None, 2], dtype="Int64")})
    values, _, attr_range = extract_attribute_values(edges, "w")

    assert values[0] == 4.0 and values[2] == 2.0
    assert np.isnan(values[1])
    assert attr_range == ValueRange(2.0, 4.0)


def test_extract_non_numeric_attribute_is_not_fatal(edge_df):
    values, constant, attr_range = extract_attribute_values(edge_df, "label")

    assert np.isnan(values).all()
    assert not constant.any()
    assert attr_range is None


def test_extract_absent_attribute(edge_df):
    values, _, attr_range = extract_attribute_values(edge_df, "nope")
    assert np.isnan(values).all()
    assert attr_range is None


def test_extract_none_attribute_gives_constant_weights(edge_df):
    values, constant, attr_range = extract_attribute_values(edge_df, NONE_ATTRIBUTE)

    np.testing.assert_array_equal(values, np.ones(len(edge_df)))
    assert constant.all()
    assert attr_range is None


# ------------------------------------------------------------------
# passes 2 and 3: conversion and collision fix-up
# ------------------------------------------------------------------


def test_converter_receives_attribute_range(edge_df):
    calls = []

    def recording(value, lo, hi):
        calls.append((value, lo, hi))
        return value

    WeightPipeline(edge_df, "score", converter=recording)

    assert [c[0] for c in calls] == [1.0, 2.0, 3.0, 5.0]
    assert all(c[1:] == (1.0, 5.0) for c in calls)


def test_constant_edges_skip_conversion(edge_df):
    def exploding(value, lo, hi):
        raise AssertionError("converter must not run in constant-weight mode")

    pipeline = WeightPipeline(edge_df, NONE_ATTRIBUTE, converter=exploding)

    np.testing.assert_array_equal(pipeline.get_edge_weights(), np.ones(len(edge_df)))
    assert pipeline.get_weight_range() == ValueRange(1.0, 1.0)


def test_collisions_placed_above_max_weight():
    edges = pd.DataFrame({"w": [1.0, 2.0, 3.0, 4.0]})

    def doubling(value, lo, hi):
        return UNRESOLVED if value == 3.0 else value * 2

    pipeline = WeightPipeline(edges, "w", converter=doubling)
    weights = pipeline.get_edge_weights()

    np.testing.assert_allclose(weights, [2.0, 4.0, 8.8, 8.0])
    assert pipeline.get_weight_range() == ValueRange(2.0, 8.0)
    np.testing.assert_array_equal(pipeline.get_collisions(), [2])


def test_nan_from_converter_is_a_collision():
    edges = pd.DataFrame({"w": [1.0, 10.0]})
    pipeline = WeightPipeline(edges, "w", converter=lambda v, lo, hi: np.nan if v > 5 else v)

    np.testing.assert_allclose(pipeline.get_edge_weights(), [1.0, 1.1])


def test_final_weights_are_constant_in_range_or_collision():
    rng = np.random.default_rng(3)
    raw = rng.uniform(-5, 5, 200)
    raw[rng.choice(200, 20, replace=False)] = np.nan
    edges = pd.DataFrame({"w": raw})

    def sometimes(value, lo, hi):
        return UNRESOLVED if value > 4 else (value - lo) / (hi - lo)

    pipeline = WeightPipeline(edges, "w", converter=sometimes)
    weights = pipeline.get_edge_weights()
    lo, hi = pipeline.get_weight_range()
    collision = hi + hi / 10

    resolved = weights[~np.isnan(weights)]
    ok = ((resolved >= lo) & (resolved <= hi)) | np.isclose(resolved, collision)
    assert ok.all()
    # only the edges that never had a value are left without a weight
    np.testing.assert_array_equal(np.isnan(weights), np.isnan(raw))


def test_float32_nan_from_converter_is_a_collision():
    edges = pd.DataFrame({"w": [1.0, 2.0, 10.0]})

    def single_precision(value, lo, hi):
        return np.float32(np.nan) if value > 5 else np.float32(value)

    pipeline = WeightPipeline(edges, "w", converter=single_precision)

    np.testing.assert_allclose(pipeline.get_edge_weights(), [1.0, 2.0, 2.2])
    np.testing.assert_array_equal(pipeline.get_collisions(), [2])


def test_pandas_na_from_converter_is_a_collision():
    edges = pd.DataFrame({"w": [1.0, 2.0, 10.0]})
    pipeline = WeightPipeline(edges, "w", converter=lambda v, lo, hi: pd.NA if v > 5 else v)

    np.testing.assert_allclose(pipeline.get_edge_weights(), [1.0, 2.0, 2.2])
    np.testing.assert_array_equal(pipeline.get_collisions(), [2])


def test_fix_collisions_without_any_weight():
    weights = np.array([np.nan, np.nan])
    fixed = fix_collisions(weights, np.array([0, 1]), None)
    np.testing.assert_array_equal(fixed, [0.0, 0.0])


def test_convert_weights_returns_explicit_accumulators():
    values = np.array([2.0, np.nan, 6.0])
    constant = np.zeros(3, dtype=bool)
    weights, collisions, weight_range = convert_weights(
        values, constant, ValueRange(2.0, 6.0), lambda v, lo, hi: v - lo)

    np.testing.assert_array_equal(weights[[0, 2]], [0.0, 4.0])
    assert np.isnan(weights[1])
    assert len(collisions) == 0
    assert weight_range == ValueRange(0.0, 4.0)


def test_edge_weights_are_immutable(edge_df):
    pipeline = WeightPipeline(edge_df, "score")
    weights = pipeline.get_edge_weights()
    weights[:] = 0.0
    assert pipeline.get_edge_weights()[0] == 1.0


# ------------------------------------------------------------------
# scaling
# ------------------------------------------------------------------


def test_scale_value_distance_inverts():
    pipeline = WeightPipeline(pd.DataFrame({"w": [1.0, 4.0]}), "w", distance_values=True)

    assert pipeline.scale_value(4.0) == pytest.approx(0.25)
    assert pipeline.scale_value(0.0) == np.inf


def test_scale_value_log():
    pipeline = WeightPipeline(pd.DataFrame({"w": [0.01, 1.0]}), "w", log_values=True)

    assert pipeline.scale_value(0.01) == pytest.approx(2.0)
    assert pipeline.scale_value(0.0) == LOG_CEILING


def test_scale_value_log_shifts_negative_attributes():
    pipeline = WeightPipeline(pd.DataFrame({"w": [-1.0, 9.0]}), "w", log_values=True)

    # shifted by |min_attribute| = 1 before the log
    assert pipeline.scale_value(9.0) == pytest.approx(-1.0)


def test_scale_value_inverted_zero_hits_log_ceiling():
    pipeline = WeightPipeline(pd.DataFrame({"w": [1.0, 2.0]}), "w",
                              distance_values=True, log_values=True)

    assert pipeline.scale_value(0.0) == LOG_CEILING
    assert pipeline.scale_value(10.0) == pytest.approx(1.0)


def test_scale_value_untouched_without_flags():
    pipeline = WeightPipeline(pd.DataFrame({"w": [1.0, 2.0]}), "w")
    assert pipeline.scale_value(3.5) == 3.5
    assert not pipeline.has_distance_values()
    assert not pipeline.has_log_values()


def test_normalized_value(edge_df):
    pipeline = WeightPipeline(edge_df, "score")
    assert pipeline.get_normalized_value(1.0) == 0.0
    assert pipeline.get_normalized_value(5.0) == 1.0
    assert pipeline.get_normalized_value(3.0) == pytest.approx(0.5)


def test_verbose_reports_progress(edge_df, capsys):
    pipeline = WeightPipeline(edge_df, "score", verbose=True)
    out = capsys.readouterr().out
    assert "Computed 5 edge weights" in out
    assert "weights.convert" in pipeline.timing.get_stats(as_dict=True)
