from __future__ import annotations

import json
from typing import Any, List

import yaml

from lox.lox_tokens import Token
from lox.lox_ast import Expr, Stmt
from lox.lox_printer import AstPrinter


# --------------------------
# Helpers
# --------------------------

def _token_to_builtin(token: Token) -> dict:
    out = {'token': token.type.name, 'lexeme': token.lexeme, 'line': token.line}
    if token.literal is not None:
        out['literal'] = token.literal
    return out


def to_builtin(obj: Any) -> Any:
    """
    Converts tokens and syntax tree nodes into plain dicts and lists.
    Each node becomes a dict whose 'type' key is the node class name,
    followed by its fields in declaration order.
    """
    if isinstance(obj, list):
        return [to_builtin(x) for x in obj]
    if isinstance(obj, Token):
        return _token_to_builtin(obj)
    if isinstance(obj, (Expr, Stmt)):
        out = {'type': type(obj).__name__}
        for key, value in vars(obj).items():
            out[key] = to_builtin(value)
        return out
    return obj


# --------------------------
# Public API
# --------------------------

def serialize(statements: List[Stmt], fmt: str = 'json') -> str:
    """
    Render a parsed program as text in the given format: 'json', 'yaml', or
    'text' (the parenthesized prefix form of AstPrinter, one statement per line).
    """
    fmt_l = (fmt or '').lower()
    if fmt_l == 'text':
        return AstPrinter().print_program(statements)
    data = to_builtin(statements)
    if fmt_l == 'json':
        return json.dumps(data, indent=2)
    if fmt_l in ('yaml', 'yml'):
        return yaml.safe_dump(data, sort_keys=False)
    raise ValueError(f"Unsupported format for serialize: {fmt}")
