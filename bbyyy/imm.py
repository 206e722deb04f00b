"""Immediate values: typed integer and floating-point constants with C-like arithmetic."""

from __future__ import annotations

import math
import operator
import struct
from enum import IntEnum
from typing import Callable, Union

_U64 = 1 << 64
_I64_MIN = -(1 << 63)


class ImmError(ArithmeticError):
    """Raised when an operation is not defined for the operand types."""


class ImmType(IntEnum):
    """Scalar types; a later member is the common type of an earlier one."""

    I1 = 0
    U1 = 1
    I8 = 2
    U8 = 3
    I16 = 4
    U16 = 5
    I32 = 6
    U32 = 7
    I64 = 8
    U64 = 9
    F32 = 10
    F64 = 11


_SIGNED_INT = frozenset(
    {ImmType.I1, ImmType.I8, ImmType.I16, ImmType.I32, ImmType.I64}
)
_UNSIGNED_INT = frozenset(
    {ImmType.U1, ImmType.U8, ImmType.U16, ImmType.U32, ImmType.U64}
)
_FLOAT = frozenset({ImmType.F32, ImmType.F64})

_BYTES = {
    ImmType.I1: 1,
    ImmType.U1: 1,
    ImmType.I8: 1,
    ImmType.U8: 1,
    ImmType.I16: 2,
    ImmType.U16: 2,
    ImmType.I32: 4,
    ImmType.U32: 4,
    ImmType.F32: 4,
    ImmType.I64: 8,
    ImmType.U64: 8,
    ImmType.F64: 8,
}


def is_imm_signed(ty: ImmType) -> bool:
    """Signed integers and floats are signed."""
    return ty in _SIGNED_INT or ty in _FLOAT


def is_imm_float(ty: ImmType) -> bool:
    return ty in _FLOAT


def bytes_of_imm_type(ty: ImmType) -> int:
    return _BYTES[ImmType(ty)]


def is_imm_integer(ty: ImmType) -> bool:
    return ty in _SIGNED_INT or ty in _UNSIGNED_INT


def join_imm_type(a: ImmType, b: ImmType) -> ImmType:
    """The common type of two operands: simply the later of the two."""
    return ImmType(max(a, b))


def _wrap_signed(v: int) -> int:
    return ((v - _I64_MIN) % _U64) + _I64_MIN


def _to_f32(x: float) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    try:
        return struct.unpack("<f", struct.pack("<f", x))[0]
    except OverflowError:
        return math.copysign(math.inf, x)


def _to_int(value: Union[int, float]) -> int:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ImmError(f"cannot convert {value} to an integer")
        return math.trunc(value)
    return int(value)


def _normalize(value: Union[int, float, bool], ty: ImmType) -> Union[int, float]:
    if ty in _SIGNED_INT:
        return _wrap_signed(_to_int(value))
    if ty in _UNSIGNED_INT:
        return _to_int(value) % _U64
    if ty == ImmType.F32:
        return _to_f32(float(value))
    return float(value)


def _infer(value: object) -> ImmType:
    if isinstance(value, bool):
        return ImmType.I1
    if isinstance(value, int):
        if -(1 << 31) <= value < (1 << 31):
            return ImmType.I32
        return ImmType.I64
    if isinstance(value, float):
        return ImmType.F64
    raise TypeError(f"cannot make an immediate from {type(value).__name__}")


def _trunc_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("integer division by zero")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _trunc_rem(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


def _float_div(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


Number = Union["ImmValue", int, float, bool]


def _coerce(other: object) -> "ImmValue":
    if isinstance(other, ImmValue):
        return other
    return ImmValue(other)  # type: ignore[arg-type]


def _is_operand(other: object) -> bool:
    return isinstance(other, (ImmValue, int, float))


class ImmValue:
    """A constant of a given ImmType; integers are held in 64 bits."""

    __slots__ = ("ty", "value")

    def __init__(self, value: Union[int, float, bool] = 0, ty: ImmType | None = None):
        if ty is None:
            ty = _infer(value)
        self.ty = ImmType(ty)
        self.value = _normalize(value, self.ty)

    def cast_to(self, new_ty: ImmType) -> "ImmValue":
        return ImmValue(self.value, new_ty)

    def _operands(self, other: Number):
        o = _coerce(other)
        com = join_imm_type(self.ty, o.ty)
        return com, self.cast_to(com).value, o.cast_to(com).value

    def _arith(self, other: Number, op: Callable) -> "ImmValue":
        com, a, b = self._operands(other)
        return ImmValue(op(a, b), com)

    def _int_op(self, other: Number, op: Callable) -> "ImmValue":
        com, a, b = self._operands(other)
        if not is_imm_integer(com):
            raise ImmError("non-integer type does operation on integer")
        return ImmValue(op(a, b), com)

    def _compare(self, other: Number, op: Callable) -> bool:
        _, a, b = self._operands(other)
        return bool(op(a, b))

    def __add__(self, other: Number) -> "ImmValue":
        return self._arith(other, operator.add)

    def __sub__(self, other: Number) -> "ImmValue":
        return self._arith(other, operator.sub)

    def __mul__(self, other: Number) -> "ImmValue":
        return self._arith(other, operator.mul)

    def __truediv__(self, other: Number) -> "ImmValue":
        com, a, b = self._operands(other)
        if is_imm_float(com):
            return ImmValue(_float_div(a, b), com)
        return ImmValue(_trunc_div(a, b), com)

    def __mod__(self, other: Number) -> "ImmValue":
        return self._int_op(other, _trunc_rem)

    def __and__(self, other: Number) -> "ImmValue":
        return self._int_op(other, operator.and_)

    def __or__(self, other: Number) -> "ImmValue":
        return self._int_op(other, operator.or_)

    def __xor__(self, other: Number) -> "ImmValue":
        return self._int_op(other, operator.xor)

    def __rshift__(self, other: Number) -> "ImmValue":
        return self._int_op(other, operator.rshift)

    def __lshift__(self, other: Number) -> "ImmValue":
        return self._int_op(other, operator.lshift)

    def logical_and(self, other: Number) -> bool:
        return self._compare(other, lambda a, b: bool(a) and bool(b))

    def logical_or(self, other: Number) -> bool:
        return self._compare(other, lambda a, b: bool(a) or bool(b))

    def __lt__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.lt)  # type: ignore[arg-type]

    def __le__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.le)  # type: ignore[arg-type]

    def __gt__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.gt)  # type: ignore[arg-type]

    def __ge__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.ge)  # type: ignore[arg-type]

    def __eq__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.eq)  # type: ignore[arg-type]

    def __ne__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self._compare(other, operator.ne)  # type: ignore[arg-type]

    __hash__ = None  # type: ignore[assignment]

    def __neg__(self) -> "ImmValue":
        return ImmValue(-self.value, self.ty)

    def __bool__(self) -> bool:
        return self.value != 0

    def text(self) -> str:
        """Decimal for integers, hex of the double-precision bits for floats."""
        if is_imm_float(self.ty):
            (bits,) = struct.unpack(">Q", struct.pack(">d", float(self.value)))
            return f"0x{bits:016x}"
        return str(self.value)

    def __str__(self) -> str:
        return self.text()

    def __repr__(self) -> str:
        return f"ImmValue({self.value!r}, ImmType.{self.ty.name})"