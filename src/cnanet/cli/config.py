"""
Configuration file support for the cnanet CLI.

Supports YAML and JSON config files with CLI argument override:

    clustering:  {eps: 0.001, min_pts: 2, check_overlap: true, chunk_size: 500}
    cis_trans:   {cis_window: 2000000}
    modules:     {method: edge_betweenness, min_module_size: 15, max_splits: null}
    enrichment:  {fdr: 0.05, min_set_size: 15, max_set_size: 300, n_trials: 100,
                  null_model: bipartite_swap, seed: 42, top_hubs: null,
                  checkpoint_every: 1}
    parallel:    {n_jobs: 1}

Unknown sections or keys are rejected so that typos never silently fall
back to defaults.
"""

from __future__ import annotations

import json
from argparse import Namespace
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from cnanet.exceptions import ValidationError

__all__ = [
    'ClusteringConfig',
    'CisTransConfig',
    'ModuleConfig',
    'EnrichmentConfig',
    'ParallelConfig',
    'PipelineConfig',
    'load_config',
    'config_from_dict',
    'merge_config_with_args',
    'config_from_args',
    'resolve_config',
    'ARG_TO_CONFIG',
]


@dataclass
class ClusteringConfig:
    """Correlation clustering of predictors."""
    eps: float = 1e-3
    min_pts: int = 2
    check_overlap: bool = True
    chunk_size: int = 500


@dataclass
class CisTransConfig:
    cis_window: int = 2_000_000


@dataclass
class ModuleConfig:
    """Module detection; method is 'edge_betweenness' or 'greedy_modularity'."""
    method: str = 'edge_betweenness'
    min_module_size: int = 15
    max_splits: Optional[int] = None


@dataclass
class EnrichmentConfig:
    """Functional enrichment and the neighbourhood null model."""
    fdr: float = 0.05
    min_set_size: int = 15
    max_set_size: int = 300
    n_trials: int = 100
    null_model: str = 'bipartite_swap'
    seed: Optional[int] = None
    top_hubs: Optional[int] = None
    checkpoint_every: int = 1


@dataclass
class ParallelConfig:
    n_jobs: int = 1


@dataclass
class PipelineConfig:
    """Complete configuration, one section per stage."""
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    cis_trans: CisTransConfig = field(default_factory=CisTransConfig)
    modules: ModuleConfig = field(default_factory=ModuleConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_SECTIONS = {f.name: f.default_factory for f in fields(PipelineConfig)}

# CLI dest -> (section, key)
ARG_TO_CONFIG = {
    'eps': ('clustering', 'eps'),
    'min_pts': ('clustering', 'min_pts'),
    'chunk_size': ('clustering', 'chunk_size'),
    'cis_window': ('cis_trans', 'cis_window'),
    'module_method': ('modules', 'method'),
    'min_module_size': ('modules', 'min_module_size'),
    'max_splits': ('modules', 'max_splits'),
    'fdr': ('enrichment', 'fdr'),
    'min_set_size': ('enrichment', 'min_set_size'),
    'max_set_size': ('enrichment', 'max_set_size'),
    'n_trials': ('enrichment', 'n_trials'),
    'null_model': ('enrichment', 'null_model'),
    'seed': ('enrichment', 'seed'),
    'top_hubs': ('enrichment', 'top_hubs'),
    'checkpoint_every': ('enrichment', 'checkpoint_every'),
    'n_jobs': ('parallel', 'n_jobs'),
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.

    Returns:
        Nested dict (section -> key -> value), validated against the schema

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValidationError: Unsupported format, unparsable content, or
            unknown sections/keys
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValidationError(
                    f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValidationError("Config file must contain a mapping at top level")

    config_from_dict(config)
    return config


def config_from_dict(config: Dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig, rejecting unknown sections and keys."""
    unknown = set(config) - set(_SECTIONS)
    if unknown:
        raise ValidationError(f"Unknown config sections: {sorted(unknown)}")

    sections = {}
    for name, factory in _SECTIONS.items():
        values = config.get(name) or {}
        if not isinstance(values, dict):
            raise ValidationError(f"Config section '{name}' must be a mapping")
        allowed = {f.name for f in fields(factory)}
        bad = set(values) - allowed
        if bad:
            raise ValidationError(f"Unknown keys in config section '{name}': {sorted(bad)}")
        sections[name] = factory(**values)
    return PipelineConfig(**sections)


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Rules:
    - CLI args always override config if explicitly set
    - If the CLI arg was not set, use the config value
    - If neither is set, keep the CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values into parsed CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Args:
        config: Dict from :func:`load_config`
        args: Parsed arguments
        cli_args: Raw argument list, used to detect explicit flags
    """
    explicit = _explicit_args(cli_args)
    merged = Namespace(**vars(args))
    for dest, (section, key) in ARG_TO_CONFIG.items():
        if not hasattr(merged, dest):
            continue
        config_value = (config.get(section) or {}).get(key)
        setattr(merged, dest, _merge_value(getattr(merged, dest), config_value, dest in explicit))
    return merged


def config_from_args(args: Namespace, config: Optional[Dict[str, Any]] = None) -> PipelineConfig:
    """PipelineConfig from the config file dict overlaid with (merged) CLI arguments."""
    result = config_from_dict(config or {})
    for dest, (section, key) in ARG_TO_CONFIG.items():
        value = getattr(args, dest, None)
        if value is not None:
            setattr(getattr(result, section), key, value)
    return result


def resolve_config(args: Namespace) -> Tuple[Namespace, PipelineConfig]:
    """
    Load ``args.config`` (if any), merge it under the explicit CLI flags and
    return the merged namespace with the resulting PipelineConfig.
    """
    config = load_config(args.config) if getattr(args, 'config', None) else {}
    merged = merge_config_with_args(config, args, getattr(args, 'raw_args', None))
    return merged, config_from_args(merged, config)
