"""airlift.chart — Chart value trees, image rewriting and analysis."""

from airlift.chart.values import (
    ScalarNode, SequenceNode, MappingNode, Node,
    decode_values, encode_values, load_values_file, save_values_file,
)
from airlift.chart.rewriter import (
    rewrite_values, rewrite_values_file, rewrite_chart_archive,
)
from airlift.chart.analyzer import (
    ImageReference, analyze_values, analyze_templates,
    analyze_chart_archive, find_images_not_in_manifest,
)

__all__ = [
    "ScalarNode", "SequenceNode", "MappingNode", "Node",
    "decode_values", "encode_values", "load_values_file", "save_values_file",
    "rewrite_values", "rewrite_values_file", "rewrite_chart_archive",
    "ImageReference", "analyze_values", "analyze_templates",
    "analyze_chart_archive", "find_images_not_in_manifest",
]
