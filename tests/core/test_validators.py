"""
Tests for core input validators.

Each validator checks one thing and names the offending parameter in
its error message.
"""

import numpy as np
import pytest

from pylinmodels.core.exceptions import DimensionError, ValidationError
from pylinmodels.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_consistent_length,
    check_finite,
    check_in_range,
    check_level,
    check_min_samples,
    check_positive_int,
)


class TestCheckArray:

    def test_list_to_float_array(self):
        arr = check_array([1, 2, 3], 'x')
        assert arr.dtype == np.float64
        np.testing.assert_array_equal(arr, [1.0, 2.0, 3.0])

    def test_bool_promoted_to_float(self):
        arr = check_array(np.array([True, False]), 'x')
        assert arr.dtype == np.float64
        np.testing.assert_array_equal(arr, [1.0, 0.0])

    def test_float32_preserved(self):
        arr = check_array(np.ones(3, dtype=np.float32), 'x')
        assert arr.dtype == np.float32

    def test_rejects_strings(self):
        with pytest.raises(ValidationError, match="labels"):
            check_array(['a', 'b'], 'labels')

    def test_rejects_object_dtype(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array(np.array([1, None], dtype=object), 'x')


class TestCheckFinite:

    def test_finite_passes(self):
        check_finite(np.array([1.0, 2.0]), 'x')

    def test_counts_nan_and_inf(self):
        with pytest.raises(ValidationError, match=r"1 NaN, 2 Inf"):
            check_finite(np.array([np.nan, np.inf, -np.inf, 0.0]), 'x')


class TestCheckNdim:

    def test_check_1d_rejects_2d(self):
        with pytest.raises(DimensionError, match="expected 1D"):
            check_1d(np.ones((2, 2)), 'y')

    def test_check_2d_rejects_1d(self):
        with pytest.raises(DimensionError, match="expected 2D"):
            check_2d(np.ones(3), 'X')

    def test_passes(self):
        check_1d(np.ones(3), 'y')
        check_2d(np.ones((3, 2)), 'X')


class TestCheckConsistentLength:

    def test_same_length_passes(self):
        check_consistent_length(np.ones(5), np.ones((5, 2)), names=('y', 'X'))

    def test_error_lists_lengths(self):
        with pytest.raises(DimensionError, match="y=5, X=4"):
            check_consistent_length(np.ones(5), np.ones((4, 2)), names=('y', 'X'))

    def test_wrong_number_of_names(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.ones(3), np.ones(3), names=('a',))


class TestCheckMinSamples:

    def test_exact_minimum_passes(self):
        check_min_samples(np.ones(3), 3, 'y')

    def test_too_few(self):
        with pytest.raises(ValidationError, match="at least 3"):
            check_min_samples(np.ones(2), 3, 'y')


class TestCheckInRange:

    def test_closed_interval(self):
        check_in_range(np.array([0.0, 0.5, 1.0]), 'y', low=0.0, high=1.0)

    def test_open_lower_bound(self):
        with pytest.raises(ValidationError, match=r"1 value\(s\) outside \(0.0, inf\]"):
            check_in_range(np.array([0.0, 1.0]), 'y', low=0.0, low_inclusive=False)

    def test_counts_offenders(self):
        with pytest.raises(ValidationError, match=r"2 value\(s\)"):
            check_in_range(np.array([-1.0, 2.0, 0.5]), 'y', low=0.0, high=1.0)


class TestCheckLevel:

    @pytest.mark.parametrize("level", [0.5, 0.95, 0.999])
    def test_valid(self, level):
        check_level(level)

    @pytest.mark.parametrize("level", [0.0, 1.0, 95, -0.1])
    def test_invalid(self, level):
        with pytest.raises(ValidationError, match="level"):
            check_level(level)


class TestCheckPositiveInt:

    @pytest.mark.parametrize("value", [1, 10, np.int64(3)])
    def test_valid(self, value):
        check_positive_int(value, 'n')

    @pytest.mark.parametrize("value", [0, -2, 2.0, True, '3'])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="n: must be a positive integer"):
            check_positive_int(value, 'n')
