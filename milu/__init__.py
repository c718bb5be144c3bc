"""A small typed expression language: parser, type checker, evaluator and shell."""

__version__ = "0.2.1"
__all__ = ["parser", "repl", "script", "stdlib", "strings"]