"""Convenience exports for the TODO extractors."""

from .codebase import CodeContext, CodebaseTodoExtractor, SemanticTodoExtractor
from .markdown import MarkdownMetadata, MarkdownTodoParser, find_markdown_files, parse_markdown_tree
from .text import TextTodoExtractor

__all__ = [
    "CodeContext",
    "CodebaseTodoExtractor",
    "MarkdownMetadata",
    "MarkdownTodoParser",
    "SemanticTodoExtractor",
    "TextTodoExtractor",
    "find_markdown_files",
    "parse_markdown_tree",
]
