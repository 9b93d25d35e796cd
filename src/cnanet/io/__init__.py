"""Loaders for external-stage tables and writers for reports and networks."""

from cnanet.io.loaders import (
    sniff_delimiter,
    load_feature_matrix,
    load_attribute_table,
    load_adjacency,
    load_gmt,
    load_membership,
    load_module_assignment,
    load_degree_ensemble,
)
from cnanet.io.writers import write_records, write_graph_json, read_graph_json, write_json

__all__ = [
    'sniff_delimiter',
    'load_feature_matrix',
    'load_attribute_table',
    'load_adjacency',
    'load_gmt',
    'load_membership',
    'load_module_assignment',
    'load_degree_ensemble',
    'write_records',
    'write_graph_json',
    'read_graph_json',
    'write_json',
]
