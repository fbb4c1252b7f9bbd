"""
YAML manifest merge engine and file helpers.
"""

from pires_cli.yamlmerge.codec import parse, serialize
from pires_cli.yamlmerge.document import Document
from pires_cli.yamlmerge.exceptions import EncodeError, ParseError, StructureError, YamlMergeError
from pires_cli.yamlmerge.merger import (
    DEFAULT_POLICY,
    MergePolicy,
    merge_arrays_uniquely,
    merge_documents,
    merge_values_for_key,
)

__all__ = [
    "DEFAULT_POLICY",
    "Document",
    "EncodeError",
    "MergePolicy",
    "ParseError",
    "StructureError",
    "YamlMergeError",
    "merge_arrays_uniquely",
    "merge_documents",
    "merge_values_for_key",
    "parse",
    "serialize",
]
