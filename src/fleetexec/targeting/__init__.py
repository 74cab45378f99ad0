"""Target selection and platform classification."""

from .selectors import (
    AllTargets,
    ExplicitIds,
    FileList,
    TagQuery,
    TargetSelector,
    parse_tag_expression,
    read_target_file,
    resolve,
)
from .classifier import NOT_FOUND_DIAGNOSTIC, classify

__all__ = [
    "AllTargets",
    "ExplicitIds",
    "FileList",
    "TagQuery",
    "TargetSelector",
    "parse_tag_expression",
    "read_target_file",
    "resolve",
    "NOT_FOUND_DIAGNOSTIC",
    "classify",
]
