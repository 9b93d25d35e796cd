"""
Tests for seed handling, worker dispatch and atomic writes.
"""

import json
import logging

import numpy as np
import pytest

from cnanet.utils.fileio import atomic_write_json, read_json
from cnanet.utils.parallel import resolve_n_jobs, run_units
from cnanet.utils.seeding import resolve_seed, spawn_seeds


class TestSeeding:
    def test_spawned_seeds_prefix_stable(self):
        assert spawn_seeds(11, 3) == spawn_seeds(11, 10)[:3]
        assert len(set(spawn_seeds(11, 10))) == 10

    def test_explicit_seed_logged(self, caplog):
        with caplog.at_level(logging.INFO):
            assert resolve_seed(5, "Null model") == 5
        assert "seed=5" in caplog.text

    def test_missing_seed_flagged(self, caplog):
        seed = resolve_seed(None, "Null model")
        assert isinstance(seed, int)
        assert any(r.levelno == logging.WARNING and str(seed) in r.getMessage() for r in caplog.records)


class TestRunUnits:
    def test_serial_order_and_callback(self):
        seen = []
        results = run_units(abs, [-3, 2, -1], on_result=lambda i, r: seen.append((i, r)))
        assert results == [3, 2, 1]
        assert seen == [(0, 3), (1, 2), (2, 1)]

    def test_parallel_keeps_unit_order(self):
        seen = {}
        results = run_units(abs, list(range(-6, 0)), n_jobs=2, on_result=seen.__setitem__)
        assert results == [6, 5, 4, 3, 2, 1]
        assert seen == {i: 6 - i for i in range(6)}

    def test_resolve_n_jobs(self):
        assert resolve_n_jobs(None) == 1
        assert resolve_n_jobs(3) == 3
        assert resolve_n_jobs(-1) >= 1


class TestAtomicWrite:
    def test_round_trip_with_numpy_and_sets(self, tmp_path):
        path = tmp_path / "state.json"
        atomic_write_json(path, {'n': np.int64(3), 'x': np.float64(0.5), 'ids': {'b', 'a'}})
        assert read_json(path) == {'n': 3, 'x': 0.5, 'ids': ['a', 'b']}

    def test_failed_write_leaves_previous_file(self, tmp_path):
        path = tmp_path / "state.json"
        atomic_write_json(path, {'ok': True})
        with pytest.raises(TypeError):
            atomic_write_json(path, {'bad': object()})
        assert json.loads(path.read_text()) == {'ok': True}
        assert list(tmp_path.iterdir()) == [path]
