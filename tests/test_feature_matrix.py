"""
Tests for FeatureMatrix construction and validation.
"""

import numpy as np
import pandas as pd
import pytest

from cnanet.core.feature_matrix import FeatureMatrix
from cnanet.exceptions import ValidationError

from conftest import generate_predictor_matrix


class TestFeatureMatrixValidation:
    def test_from_frame(self):
        frame = generate_predictor_matrix(n_samples=10, n_features=3)
        matrix = FeatureMatrix.from_frame(frame)
        assert matrix.shape == (10, 3)
        assert matrix.level == 'x'
        assert matrix.feature_ids.tolist() == ['p1', 'p2', 'p3']
        pd.testing.assert_frame_equal(matrix.to_frame(), frame)

    def test_duplicate_feature_ids(self):
        with pytest.raises(ValidationError, match="Duplicate feature"):
            FeatureMatrix(np.zeros((3, 2)), pd.Index(['a', 'a']), pd.Index(['s1', 's2', 's3']))

    def test_duplicate_sample_ids(self):
        with pytest.raises(ValidationError, match="Duplicate sample"):
            FeatureMatrix(np.zeros((2, 2)), pd.Index(['a', 'b']), pd.Index(['s1', 's1']))

    def test_shape_mismatch(self):
        with pytest.raises(ValidationError):
            FeatureMatrix(np.zeros((3, 2)), pd.Index(['a', 'b', 'c']), pd.Index(['s1', 's2', 's3']))

    def test_unknown_level(self):
        with pytest.raises(ValidationError):
            FeatureMatrix(np.zeros((1, 1)), pd.Index(['a']), pd.Index(['s']), level='z')

    def test_interval_table_must_cover_features(self):
        intervals = pd.DataFrame({'chromosome': ['1']}, index=['a'])
        with pytest.raises(ValidationError, match="lacks"):
            FeatureMatrix(np.zeros((2, 2)), pd.Index(['a', 'b']), pd.Index(['s1', 's2']), intervals=intervals)

    def test_interval_table_aligned_to_features(self):
        intervals = pd.DataFrame(
            {'chromosome': ['2', '1'], 'start': [10, 20], 'end': [15, 25]},
            index=['b', 'a'],
        )
        matrix = FeatureMatrix(np.zeros((2, 2)), pd.Index(['a', 'b']), pd.Index(['s1', 's2']),
                               intervals=intervals)
        assert matrix.intervals.index.tolist() == ['a', 'b']
        index = matrix.interval_index()
        assert index['a'].chromosome == '1'
        assert index['b'].start == 10


class TestSelectFeatures:
    def test_mask_subset(self):
        matrix = FeatureMatrix.from_frame(generate_predictor_matrix(n_features=4))
        subset = matrix.select_features(np.array([True, False, True, False]))
        assert subset.feature_ids.tolist() == ['p1', 'p3']
        np.testing.assert_array_equal(subset.data, matrix.data[:, [0, 2]])

    def test_mask_length_checked(self):
        matrix = FeatureMatrix.from_frame(generate_predictor_matrix(n_features=4))
        with pytest.raises(ValidationError):
            matrix.select_features(np.array([True, False]))
