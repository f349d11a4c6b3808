"""rigorplot public API."""

import logging

from .ast import (
    And,
    Atomic,
    BinaryOp,
    Expr,
    Or,
    Rel,
    RelOp,
    UnaryOp,
    ValueType,
    VarSet,
)
from .ball import Ball, ComplexBall
from .errors import InternalContractError, ParseError, RigorPlotError, UnsupportedError
from .evaluator import evaluate
from .interval import Decoration, Interval
from .parser import parse, parse_expr

logging.getLogger(__name__).addHandler(logging.NullHandler())

try:
    from .ir import CompiledRelation, JaxIR, compile_relation, evaluate_ir, lower_to_ir
except ModuleNotFoundError as exc:
    if exc.name and exc.name.startswith("jax"):
        _jax_ir_import_error = exc

        def lower_to_ir(*_args, **_kwargs):
            raise ModuleNotFoundError(
                "jax is required for lower_to_ir(). Install runtime deps first."
            ) from _jax_ir_import_error

        def evaluate_ir(*_args, **_kwargs):
            raise ModuleNotFoundError(
                "jax is required for evaluate_ir(). Install runtime deps first."
            ) from _jax_ir_import_error

        def compile_relation(*_args, **_kwargs):
            raise ModuleNotFoundError(
                "jax is required for compile_relation(). Install runtime deps first."
            ) from _jax_ir_import_error

        class JaxIR:  # pragma: no cover - import-time fallback
            def __init__(self, *_args, **_kwargs) -> None:
                raise ModuleNotFoundError(
                    "jax is required for JaxIR(). Install runtime deps first."
                ) from _jax_ir_import_error

        class CompiledRelation:  # pragma: no cover - import-time fallback
            def __init__(self, *_args, **_kwargs) -> None:
                raise ModuleNotFoundError(
                    "jax is required for CompiledRelation(). Install runtime deps first."
                ) from _jax_ir_import_error

    else:
        raise

__all__ = [
    "parse",
    "parse_expr",
    "evaluate",
    "lower_to_ir",
    "evaluate_ir",
    "compile_relation",
    "CompiledRelation",
    "JaxIR",
    "Expr",
    "Rel",
    "Atomic",
    "And",
    "Or",
    "RelOp",
    "UnaryOp",
    "BinaryOp",
    "ValueType",
    "VarSet",
    "Interval",
    "Decoration",
    "Ball",
    "ComplexBall",
    "RigorPlotError",
    "ParseError",
    "InternalContractError",
    "UnsupportedError",
]
