"""Compiler module."""

from scriptbundle.compiler.optimizer import simple_optimize
from scriptbundle.compiler.scanner import CommentScanner, PatternContext, strip_comments
from scriptbundle.compiler.whitespace import normalize_whitespace

__all__ = ["CommentScanner", "PatternContext", "normalize_whitespace", "simple_optimize", "strip_comments"]
