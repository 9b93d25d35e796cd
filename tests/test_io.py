"""
Tests for table loaders and report writers.
"""

import pandas as pd
import pytest

from cnanet.exceptions import ValidationError
from cnanet.io.loaders import (
    load_adjacency,
    load_attribute_table,
    load_degree_ensemble,
    load_feature_matrix,
    load_gmt,
    load_membership,
    load_module_assignment,
    sniff_delimiter,
)
from cnanet.io.writers import write_records

from conftest import generate_predictor_matrix


class TestLoaders:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_adjacency(tmp_path / "absent.csv")

    def test_sniff_tab(self, tmp_path):
        path = tmp_path / "m.tsv"
        path.write_text("id\ta\tb\nx\t1\t2\n")
        assert sniff_delimiter(path) == '\t'

    def test_feature_matrix_with_intervals(self, tmp_path):
        frame = generate_predictor_matrix(n_samples=5, n_features=3)
        frame.to_csv(tmp_path / "x.csv")
        pd.DataFrame({
            'id': ['p1', 'p2', 'p3'],
            'chromosome': ['1', '1', '2'],
            'start': [1, 100, 5],
            'end': [50, 200, None],
        }).to_csv(tmp_path / "intervals.csv", index=False)

        intervals = load_attribute_table(tmp_path / "intervals.csv")
        assert str(intervals['end'].dtype) == 'Int64'

        matrix = load_feature_matrix(tmp_path / "x.csv", intervals=intervals)
        assert matrix.feature_ids.tolist() == ['p1', 'p2', 'p3']
        assert matrix.n_samples == 5
        index = matrix.interval_index()
        assert index['p2'].start == 100
        assert not index['p3'].is_resolved

    def test_feature_matrix_transposed(self, tmp_path):
        frame = generate_predictor_matrix(n_samples=4, n_features=2)
        frame.T.to_csv(tmp_path / "x.csv")
        matrix = load_feature_matrix(tmp_path / "x.csv", features_as_rows=True)
        assert matrix.shape == (4, 2)

    def test_non_numeric_matrix(self, tmp_path):
        (tmp_path / "x.csv").write_text("sample,a\ns1,high\n")
        with pytest.raises(ValidationError, match="Non-numeric"):
            load_feature_matrix(tmp_path / "x.csv")

    def test_gmt(self, tmp_path):
        path = tmp_path / "sets.gmt"
        path.write_text(
            "GO:1\tcell cycle\ta\tb\tc\n"
            "GO:2\t\ta\n"
            "\n"
            "GO:3\tapoptosis\td\te\n"
        )
        universe = load_gmt(path, min_size=2, max_size=10)
        assert universe.term_ids == ['GO:1', 'GO:3']
        assert universe['GO:1'].name == 'cell cycle'
        assert universe['GO:3'].members == frozenset({'d', 'e'})

    def test_gmt_duplicate_term(self, tmp_path):
        path = tmp_path / "sets.gmt"
        path.write_text("GO:1\tx\ta\tb\nGO:1\ty\tc\td\n")
        with pytest.raises(ValidationError, match="duplicate"):
            load_gmt(path, min_size=1, max_size=10)

    def test_membership(self, tmp_path):
        path = tmp_path / "membership.csv"
        path.write_text("term,id\nGO:1,a\nGO:1,b\nGO:2,c\nGO:1,a\n")
        universe = load_membership(path, min_size=1, max_size=10)
        assert universe['GO:1'].members == frozenset({'a', 'b'})
        assert universe.terms_for('c') == {'GO:2'}

    def test_module_assignment(self, tmp_path):
        path = tmp_path / "modules.csv"
        path.write_text("id,module\nx1,A\ny1,A\ny2,B\n")
        assert load_module_assignment(path) == {'x1': 'A', 'y1': 'A', 'y2': 'B'}

    def test_module_assignment_repeated_node(self, tmp_path):
        path = tmp_path / "modules.csv"
        path.write_text("id,module\nx1,A\nx1,B\n")
        with pytest.raises(ValidationError):
            load_module_assignment(path)

    def test_degree_ensemble(self, tmp_path):
        path = tmp_path / "degrees.csv"
        path.write_text("id,rep1,rep2\nx1,3,\nx2,1,2\n")
        ensemble = load_degree_ensemble(path)
        assert ensemble.n_replicates == 2
        assert ensemble.degrees.loc['x1'].tolist() == [3, 0]


class TestWriters:
    def test_lists_joined_and_columns_ordered(self, tmp_path):
        path = tmp_path / "nested" / "records.csv"
        write_records(
            [{'id': 'x1', 'targets': ['y1', 'y2'], 'n': 2}, {'id': 'x2', 'targets': [], 'n': 0}],
            path,
            columns=['id', 'n', 'targets'],
        )
        frame = pd.read_csv(path, keep_default_na=False)
        assert frame.columns.tolist() == ['id', 'n', 'targets']
        assert frame['targets'].tolist() == ['y1;y2', '']

    def test_tsv_suffix(self, tmp_path):
        path = tmp_path / "records.tsv"
        write_records([{'a': 1, 'b': 2}], path)
        assert path.read_text().splitlines()[0] == "a\tb"

    def test_empty_records_keep_header(self, tmp_path):
        path = tmp_path / "empty.csv"
        write_records([], path, columns=['module', 'term'])
        assert path.read_text().strip() == "module,term"
