"""
Lox: a tree-walking interpreter for a small class-based scripting language.
"""
from lox.lox_runtime import ErrorReporter, ExecutionResult, LoxRunner, lox_native

__all__ = ["ErrorReporter", "ExecutionResult", "LoxRunner", "lox_native"]
