"""
Tests for config file loading and CLI > config > default precedence.
"""

import json
from argparse import Namespace

import pytest
import yaml

from cnanet.cli.config import (
    PipelineConfig,
    config_from_dict,
    load_config,
    merge_config_with_args,
    resolve_config,
)
from cnanet.exceptions import ValidationError


@pytest.fixture
def yaml_config(tmp_path):
    path = tmp_path / "cnanet.yaml"
    path.write_text(yaml.safe_dump({
        'clustering': {'eps': 0.01, 'min_pts': 3},
        'enrichment': {'seed': 123, 'n_trials': 50},
        'parallel': {'n_jobs': 4},
    }))
    return path


class TestLoadConfig:
    def test_yaml(self, yaml_config):
        config = load_config(yaml_config)
        assert config['clustering']['eps'] == 0.01

    def test_json(self, tmp_path):
        path = tmp_path / "cnanet.json"
        path.write_text(json.dumps({'cis_trans': {'cis_window': 500}}))
        assert config_from_dict(load_config(path)).cis_trans.cis_window == 500

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("")
        with pytest.raises(ValidationError, match="Unsupported"):
            load_config(path)

    def test_unknown_section(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("clusterin:\n  eps: 0.1\n")
        with pytest.raises(ValidationError, match="sections"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("enrichment:\n  fdr_threshold: 0.1\n")
        with pytest.raises(ValidationError, match="fdr_threshold"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("clustering: [eps: 1\n")
        with pytest.raises(ValidationError):
            load_config(path)


class TestDefaults:
    def test_pipeline_defaults(self):
        config = PipelineConfig()
        assert config.clustering.eps == 1e-3
        assert config.clustering.min_pts == 2
        assert config.cis_trans.cis_window == 2_000_000
        assert config.modules.min_module_size == 15
        assert config.enrichment.fdr == 0.05
        assert (config.enrichment.min_set_size, config.enrichment.max_set_size) == (15, 300)
        assert config.enrichment.seed is None
        assert config.to_dict()['parallel'] == {'n_jobs': 1}


class TestPrecedence:
    def test_explicit_cli_beats_config(self, yaml_config):
        args = Namespace(
            config=yaml_config, eps=None, min_pts=5, chunk_size=None, n_jobs=None,
            raw_args=['cluster', '--config', str(yaml_config), '--min-pts', '5'],
        )
        merged, config = resolve_config(args)
        assert merged.eps == 0.01
        assert merged.min_pts == 5
        assert merged.n_jobs == 4
        assert config.clustering.eps == 0.01
        assert config.clustering.min_pts == 5
        assert config.clustering.chunk_size == 500
        assert config.enrichment.seed == 123

    def test_equals_form_counts_as_explicit(self):
        args = Namespace(seed=9)
        merged = merge_config_with_args({'enrichment': {'seed': 1}}, args, ['--seed=9'])
        assert merged.seed == 9

    def test_config_fills_unset_flags(self):
        args = Namespace(seed=None, n_trials=None)
        merged = merge_config_with_args({'enrichment': {'seed': 1}}, args, [])
        assert merged.seed == 1
        assert merged.n_trials is None

    def test_no_config_file(self):
        merged, config = resolve_config(Namespace(config=None, fdr=0.1, raw_args=['--fdr', '0.1']))
        assert config.enrichment.fdr == 0.1
        assert config.enrichment.n_trials == 100
