"""Expression and relation trees for implicit-relation plotting.

An `Expr` wraps one node kind and carries metadata computed once, at
construction, from children that already carry theirs: the value type, the
set of free variables, and a structural hash. Equality and hashing look only
at node structure, never at the externally assigned `id` or the cached type,
so structurally identical sub-expressions can be deduplicated.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum, Flag
from fractions import Fraction
from typing import TYPE_CHECKING, Union

from .errors import InternalContractError
from .interval import Interval

if TYPE_CHECKING:
    from .evaluator import Evaluated

UNINIT_EXPR_ID = 2**32 - 1


class UnaryOp(str, Enum):
    ABS = "Abs"
    ACOS = "Acos"
    ACOSH = "Acosh"
    AIRY_AI = "AiryAi"
    AIRY_AI_PRIME = "AiryAiPrime"
    AIRY_BI = "AiryBi"
    AIRY_BI_PRIME = "AiryBiPrime"
    ASIN = "Asin"
    ASINH = "Asinh"
    ATAN = "Atan"
    ATANH = "Atanh"
    CEIL = "Ceil"
    CHI = "Chi"
    CI = "Ci"
    COS = "Cos"
    COSH = "Cosh"
    DIGAMMA = "Digamma"
    EI = "Ei"
    ERF = "Erf"
    ERFC = "Erfc"
    ERFI = "Erfi"
    EXP = "Exp"
    EXP10 = "Exp10"
    EXP2 = "Exp2"
    FLOOR = "Floor"
    FRESNEL_C = "FresnelC"
    FRESNEL_S = "FresnelS"
    GAMMA = "Gamma"
    LI = "Li"
    LN = "Ln"
    LOG10 = "Log10"
    NEG = "Neg"
    NOT = "Not"
    ONE = "One"
    RECIP = "Recip"
    SHI = "Shi"
    SI = "Si"
    SIN = "Sin"
    SINC = "Sinc"
    SINH = "Sinh"
    SQR = "Sqr"
    SQRT = "Sqrt"
    TAN = "Tan"
    TANH = "Tanh"
    UNDEF_AT_0 = "UndefAt0"


class BinaryOp(str, Enum):
    ADD = "Add"
    AND = "And"
    ATAN2 = "Atan2"
    BESSEL_I = "BesselI"
    BESSEL_J = "BesselJ"
    BESSEL_K = "BesselK"
    BESSEL_Y = "BesselY"
    DIV = "Div"
    EQ = "Eq"
    GAMMA_INC = "GammaInc"
    GCD = "Gcd"
    GE = "Ge"
    GT = "Gt"
    LCM = "Lcm"
    LE = "Le"
    LOG = "Log"
    LT = "Lt"
    MAX = "Max"
    MIN = "Min"
    MOD = "Mod"
    MUL = "Mul"
    NEQ = "Neq"
    NGE = "Nge"
    NGT = "Ngt"
    NLE = "Nle"
    NLT = "Nlt"
    OR = "Or"
    POW = "Pow"
    RANKED_MAX = "RankedMax"
    RANKED_MIN = "RankedMin"
    SUB = "Sub"


COMPARISON_OPS = frozenset(
    {
        BinaryOp.EQ,
        BinaryOp.GE,
        BinaryOp.GT,
        BinaryOp.LE,
        BinaryOp.LT,
        BinaryOp.NEQ,
        BinaryOp.NGE,
        BinaryOp.NGT,
        BinaryOp.NLE,
        BinaryOp.NLT,
    }
)
_BOOLEAN_OPS = frozenset({BinaryOp.AND, BinaryOp.OR})
_RANKED_OPS = frozenset({BinaryOp.RANKED_MAX, BinaryOp.RANKED_MIN})


class ValueType(str, Enum):
    SCALAR = "Scalar"
    VECTOR = "Vector"
    BOOLEAN = "Boolean"
    UNKNOWN = "Unknown"


class VarSet(Flag):
    EMPTY = 0
    X = 1
    Y = 2
    XY = X | Y


@dataclass(frozen=True)
class Constant:
    value: Interval
    rational: Fraction | None = None


@dataclass(frozen=True)
class Unary:
    op: UnaryOp
    x: "Expr"


@dataclass(frozen=True)
class Binary:
    op: BinaryOp
    x: "Expr"
    y: "Expr"


@dataclass(frozen=True)
class Pown:
    x: "Expr"
    n: int


@dataclass(frozen=True)
class Rootn:
    x: "Expr"
    n: int


@dataclass(frozen=True)
class Var:
    name: str


@dataclass(frozen=True)
class List:
    items: tuple["Expr", ...]


@dataclass(frozen=True)
class Uninit:
    pass


ExprKind = Union[Constant, Unary, Binary, Pown, Rootn, Var, List, Uninit]


def _digest(*parts: object) -> int:
    h = hashlib.blake2b(digest_size=8)
    for part in parts:
        h.update(repr(part).encode("utf-8"))
        h.update(b"\x1f")
    return int.from_bytes(h.digest(), "little")


def _structural_hash(kind: ExprKind) -> int:
    if isinstance(kind, Constant):
        q = kind.rational
        return _digest(
            "Constant",
            kind.value.lo,
            kind.value.hi,
            int(kind.value.decoration),
            None if q is None else (q.numerator, q.denominator),
        )
    if isinstance(kind, Unary):
        return _digest("Unary", kind.op.value, kind.x.internal_hash)
    if isinstance(kind, Binary):
        return _digest("Binary", kind.op.value, kind.x.internal_hash, kind.y.internal_hash)
    if isinstance(kind, Pown):
        return _digest("Pown", kind.x.internal_hash, kind.n)
    if isinstance(kind, Rootn):
        return _digest("Rootn", kind.x.internal_hash, kind.n)
    if isinstance(kind, Var):
        return _digest("Var", kind.name)
    if isinstance(kind, List):
        return _digest("List", *(item.internal_hash for item in kind.items))
    raise InternalContractError("uninitialized expression has no structural hash")


@dataclass(eq=False)
class Expr:
    kind: ExprKind
    id: int = UNINIT_EXPR_ID
    ty: ValueType = ValueType.UNKNOWN
    vars: VarSet = VarSet.EMPTY
    internal_hash: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, Uninit):
            self.update_metadata()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Expr):
            return NotImplemented
        return self.internal_hash == other.internal_hash and self.kind == other.kind

    def __hash__(self) -> int:
        return self.internal_hash

    def update_metadata(self) -> None:
        """Recompute type, free variables and hash; children must already be up to date."""
        kind = self.kind
        if isinstance(kind, Uninit):
            raise InternalContractError("cannot compute metadata of an uninitialized expression")
        self.ty = self.value_type()
        if isinstance(kind, Var):
            self.vars = {"x": VarSet.X, "y": VarSet.Y}.get(kind.name, VarSet.EMPTY)
        elif isinstance(kind, (Unary, Pown, Rootn)):
            self.vars = kind.x.vars
        elif isinstance(kind, Binary):
            self.vars = kind.x.vars | kind.y.vars
        elif isinstance(kind, List):
            acc = VarSet.EMPTY
            for item in kind.items:
                acc |= item.vars
            self.vars = acc
        else:
            self.vars = VarSet.EMPTY
        self.internal_hash = _structural_hash(kind)

    def value_type(self) -> ValueType:
        kind = self.kind
        if isinstance(kind, Constant):
            return ValueType.SCALAR
        if isinstance(kind, Var):
            return ValueType.SCALAR if kind.name in ("x", "y") else ValueType.UNKNOWN
        if isinstance(kind, Unary):
            if kind.op is UnaryOp.NOT:
                return ValueType.BOOLEAN if kind.x.ty is ValueType.BOOLEAN else ValueType.UNKNOWN
            return ValueType.SCALAR if kind.x.ty is ValueType.SCALAR else ValueType.UNKNOWN
        if isinstance(kind, Binary):
            x, y = kind.x.ty, kind.y.ty
            if kind.op in _BOOLEAN_OPS:
                ok = x is ValueType.BOOLEAN and y is ValueType.BOOLEAN
                return ValueType.BOOLEAN if ok else ValueType.UNKNOWN
            if kind.op in COMPARISON_OPS:
                ok = x is ValueType.SCALAR and y is ValueType.SCALAR
                return ValueType.BOOLEAN if ok else ValueType.UNKNOWN
            if kind.op in _RANKED_OPS:
                ok = x is ValueType.VECTOR and y is ValueType.SCALAR
                return ValueType.SCALAR if ok else ValueType.UNKNOWN
            ok = x is ValueType.SCALAR and y is ValueType.SCALAR
            return ValueType.SCALAR if ok else ValueType.UNKNOWN
        if isinstance(kind, (Pown, Rootn)):
            return ValueType.SCALAR if kind.x.ty is ValueType.SCALAR else ValueType.UNKNOWN
        if isinstance(kind, List):
            ok = all(item.ty is ValueType.SCALAR for item in kind.items)
            return ValueType.VECTOR if ok else ValueType.UNKNOWN
        raise InternalContractError("uninitialized expression has no value type")

    def eval(self) -> Evaluated | None:
        """Fold to `(enclosure, exact rational or None)`, or None if not constant."""
        from .evaluator import evaluate

        return evaluate(self)

    def dump_structure(self) -> str:
        kind = self.kind
        if isinstance(kind, Constant):
            return "@"
        if isinstance(kind, Var):
            return kind.name
        if isinstance(kind, Unary):
            return f"({kind.op.value} {kind.x.dump_structure()})"
        if isinstance(kind, Binary):
            return f"({kind.op.value} {kind.x.dump_structure()} {kind.y.dump_structure()})"
        if isinstance(kind, Pown):
            return f"(Pown {kind.x.dump_structure()} {kind.n})"
        if isinstance(kind, Rootn):
            return f"(Rootn {kind.x.dump_structure()} {kind.n})"
        if isinstance(kind, List):
            return "(" + " ".join(["List", *(item.dump_structure() for item in kind.items)]) + ")"
        raise InternalContractError("cannot dump an uninitialized expression")


def constant(value: Interval, rational: Fraction | None = None) -> Expr:
    return Expr(Constant(value, rational))


def unary(op: UnaryOp, x: Expr) -> Expr:
    return Expr(Unary(op, x))


def binary(op: BinaryOp, x: Expr, y: Expr) -> Expr:
    return Expr(Binary(op, x, y))


def pown(x: Expr, n: int) -> Expr:
    return Expr(Pown(x, n))


def rootn(x: Expr, n: int) -> Expr:
    return Expr(Rootn(x, n))


def var(name: str) -> Expr:
    return Expr(Var(name))


def list_expr(items) -> Expr:
    return Expr(List(tuple(items)))


def uninit() -> Expr:
    return Expr(Uninit())


class RelOp(str, Enum):
    EQ = "Eq"
    GE = "Ge"
    GT = "Gt"
    LE = "Le"
    LT = "Lt"


@dataclass(frozen=True)
class Atomic:
    op: RelOp
    x: Expr
    y: Expr

    def dump_structure(self) -> str:
        return f"({self.op.value} {self.x.dump_structure()} {self.y.dump_structure()})"


@dataclass(frozen=True)
class And:
    x: "Rel"
    y: "Rel"

    def dump_structure(self) -> str:
        return f"(And {self.x.dump_structure()} {self.y.dump_structure()})"


@dataclass(frozen=True)
class Or:
    x: "Rel"
    y: "Rel"

    def dump_structure(self) -> str:
        return f"(Or {self.x.dump_structure()} {self.y.dump_structure()})"


Rel = Union[Atomic, And, Or]
