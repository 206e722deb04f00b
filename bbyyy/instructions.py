"""The IR instruction set: calls, casts, comparisons, arithmetic, control
flow, memory access, phi nodes and element addressing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, IntEnum
from typing import Optional, Sequence

from bbyyy.imm import ImmType, ImmValue
from bbyyy.ir_values import (
    ArrayType,
    BasicType,
    FunctionType,
    Instr,
    InstrType,
    IrKind,
    IrType,
    PointerType,
    Type,
    TypeKind,
    Val,
    bytes_of_type,
    is_array,
    is_float,
    is_integer,
    is_pointer,
    is_same_type,
    is_signed_type,
)


def _expect_count(values: Sequence[ImmValue], count: int) -> None:
    if len(values) != count:
        raise ValueError(f"expected {count} operand values, got {len(values)}")


class CalculatableInstr(Instr, ABC):
    """An instruction whose result can be folded from constant operands."""

    @abstractmethod
    def calculate(self, values: Sequence[ImmValue]) -> ImmValue:
        """Fold the instruction given the values of its operands."""


# ---------------------------------------------------------------- calls


class CallInstr(Instr):
    instr_type = InstrType.CALL

    def __init__(self, func: Val, args: Sequence[Val] = ()):
        if not isinstance(func.ty, FunctionType):
            raise TypeError(f"{func.name} is not a function")
        super().__init__(func.ty.ret_type)
        self.func_ty: FunctionType = func.ty
        self.add_operand(func)
        for arg in args:
            self.add_operand(arg)

    def instr_print(self) -> str:
        func = self.operand(0).usee
        if len(self.func_ty.arg_type) + 1 != len(self.operands):
            raise ValueError(
                f"call of {func.name}: size of arguments unequal to the inputs"
            )
        prefix = "" if self.ty.kind is TypeKind.VOID else f"{self.name} = "
        args = ", ".join(
            f"{use.usee.ty.type_name()} {use.usee.name}" for use in self.operands[1:]
        )
        return f"{prefix}call {self.func_ty.ret_type.type_name()} @{func.name}({args})"


class RetInstr(Instr):
    instr_type = InstrType.RET

    def __init__(self, value: Optional[Val] = None):
        super().__init__(IrType(IrKind.RET))
        if value is not None:
            self.add_operand(value)

    def instr_print(self) -> str:
        if self.operands:
            value = self.operand(0).usee
            return f"ret {value.ty.type_name()} {value.name}"
        return "ret void"


class UnreachableInstr(Instr):
    instr_type = InstrType.UNREACHABLE

    def __init__(self) -> None:
        super().__init__(IrType(IrKind.UNREACHABLE))

    def instr_print(self) -> str:
        return "unreachable"


# ---------------------------------------------------------------- casts


class CastMethod(IntEnum):
    BITCAST = 0
    PTRTOINT = 1
    INTTOPTR = 2
    TRUNC = 3
    SEXT = 4
    ZEXT = 5
    FPEXT = 6
    FPTRUNC = 7
    SITOFP = 8
    UITOFP = 9
    FPTOSI = 10
    FPTOUI = 11

    @property
    def mnemonic(self) -> str:
        return _CAST_NAMES[self]


_CAST_NAMES = (
    "bitcast",
    "ptrtoint",
    "inttoptr",
    "trunc",
    "sext",
    "zext",
    "fpext",
    "fptrunc",
    "sitofp",
    "fptosi",
    "fptosi",
    "fptoui",
)


def get_cast_method(src: Type, dest: Type) -> CastMethod:
    """Choose the conversion that turns a value of `src` into `dest`."""
    if is_same_type(src, dest):
        raise ValueError("no need to cast")
    if is_pointer(src) and is_pointer(dest):
        return CastMethod.BITCAST
    if is_pointer(src) and is_integer(dest):
        return CastMethod.PTRTOINT
    if is_pointer(dest) and is_integer(src):
        return CastMethod.INTTOPTR
    if is_integer(dest) and is_integer(src) and bytes_of_type(dest) < bytes_of_type(src):
        return CastMethod.TRUNC
    if is_float(dest) != is_float(src):
        if is_float(dest):
            return CastMethod.SITOFP if is_signed_type(src) else CastMethod.UITOFP
        return CastMethod.FPTOSI if is_signed_type(dest) else CastMethod.FPTOUI
    if is_integer(dest) and is_integer(src) and bytes_of_type(dest) > bytes_of_type(src):
        # Widening from i1 must zero-extend, or true would become -1.
        if is_signed_type(dest) and src.ty != ImmType.I1:
            return CastMethod.SEXT
        return CastMethod.ZEXT
    if is_float(dest) and is_float(src):
        if bytes_of_type(dest) > bytes_of_type(src):
            return CastMethod.FPEXT
        return CastMethod.FPTRUNC
    raise TypeError(f"cannot cast {src.type_name()} to {dest.type_name()}")


class CastInstr(CalculatableInstr):
    instr_type = InstrType.CAST

    def __init__(self, ty: Type, value: Val):
        super().__init__(ty)
        self.method = get_cast_method(value.ty, ty)
        self.add_operand(value)

    def instr_print(self) -> str:
        value = self.operand(0).usee
        return (
            f"{self.name} = {self.method.mnemonic} {value.ty.type_name()} "
            f"{value.name} to {self.ty.type_name()}"
        )

    def calculate(self, values: Sequence[ImmValue]) -> ImmValue:
        _expect_count(values, 1)
        if not isinstance(self.ty, BasicType):
            raise TypeError(f"cannot fold a cast to {self.ty.type_name()}")
        return values[0].cast_to(self.ty.ty)


# ---------------------------------------------------------------- comparisons


class CmpType(Enum):
    EQ = "eq"
    NE = "ne"
    UGT = "ugt"
    UGE = "uge"
    ULT = "ult"
    ULE = "ule"
    SGT = "sgt"
    SGE = "sge"
    SLT = "slt"
    SLE = "sle"
    OEQ = "oeq"
    OGT = "ogt"
    OGE = "oge"
    OLT = "olt"
    OLE = "ole"
    UNE = "une"


_CMP_FOLD = {
    CmpType.EQ: lambda a, b: a == b,
    CmpType.OEQ: lambda a, b: a == b,
    CmpType.NE: lambda a, b: a != b,
    CmpType.UNE: lambda a, b: a != b,
    CmpType.OLT: lambda a, b: a < b,
    CmpType.SLT: lambda a, b: a < b,
    CmpType.ULT: lambda a, b: a < b,
    CmpType.OGT: lambda a, b: a > b,
    CmpType.SGT: lambda a, b: a > b,
    CmpType.UGT: lambda a, b: a > b,
    CmpType.OLE: lambda a, b: a <= b,
    CmpType.SLE: lambda a, b: a <= b,
    CmpType.ULE: lambda a, b: a <= b,
    CmpType.OGE: lambda a, b: a >= b,
    CmpType.SGE: lambda a, b: a >= b,
    CmpType.UGE: lambda a, b: a >= b,
}


class CmpInstr(CalculatableInstr):
    """A comparison; both operands are assumed to share one type."""

    instr_type = InstrType.CMP

    def __init__(self, cmp_type: CmpType, lhs: Val, rhs: Val):
        super().__init__(BasicType(ImmType.I1))
        self.cmp_type = cmp_type
        self.add_operand(lhs)
        self.add_operand(rhs)

    def instr_print(self) -> str:
        lhs = self.operand(0).usee
        rhs = self.operand(1).usee
        op = "fcmp" if is_float(lhs.ty) else "icmp"
        return (
            f"{self.name} = {op} {self.cmp_type.value} {lhs.ty.type_name()} "
            f"{lhs.name}, {rhs.name}"
        )

    def calculate(self, values: Sequence[ImmValue]) -> ImmValue:
        _expect_count(values, 2)
        return ImmValue(bool(_CMP_FOLD[self.cmp_type](values[0], values[1])))


# ---------------------------------------------------------------- arithmetic


class BinInstrType(Enum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    FADD = "fadd"
    FSUB = "fsub"
    FMUL = "fmul"
    SDIV = "sdiv"
    SREM = "srem"
    UDIV = "udiv"
    UREM = "urem"
    FDIV = "fdiv"
    FREM = "frem"
    XOR = "xor"
    AND = "and"
    OR = "or"
    ASHR = "ashr"
    LSHR = "lshr"
    SHL = "shl"
    SLT = "slt"


_BIN_FOLD = {
    BinInstrType.ADD: lambda a, b: a + b,
    BinInstrType.FADD: lambda a, b: a + b,
    BinInstrType.SUB: lambda a, b: a - b,
    BinInstrType.FSUB: lambda a, b: a - b,
    BinInstrType.MUL: lambda a, b: a * b,
    BinInstrType.FMUL: lambda a, b: a * b,
    BinInstrType.SDIV: lambda a, b: a / b,
    BinInstrType.UDIV: lambda a, b: a / b,
    BinInstrType.FDIV: lambda a, b: a / b,
    BinInstrType.SREM: lambda a, b: a % b,
    BinInstrType.UREM: lambda a, b: a % b,
    BinInstrType.FREM: lambda a, b: a % b,
    BinInstrType.AND: lambda a, b: a & b,
    BinInstrType.OR: lambda a, b: a | b,
    BinInstrType.XOR: lambda a, b: a ^ b,
    # Right shifts share the left-shift fold.
    BinInstrType.ASHR: lambda a, b: a << b,
    BinInstrType.LSHR: lambda a, b: a << b,
    BinInstrType.SHL: lambda a, b: a << b,
    BinInstrType.SLT: lambda a, b: ImmValue(a < b),
}


class UnaryInstr(CalculatableInstr):
    """Floating-point negation."""

    instr_type = InstrType.UNARY

    def __init__(self, operand: Val):
        super().__init__(operand.ty)
        self.add_operand(operand)

    def instr_print(self) -> str:
        return f"{self.name} = fneg {self.ty.type_name()} {self.operand(0).usee.name}"

    def calculate(self, values: Sequence[ImmValue]) -> ImmValue:
        _expect_count(values, 1)
        return -values[0]


class BinInstr(CalculatableInstr):
    instr_type = InstrType.BINARY

    def __init__(self, bin_type: BinInstrType, lhs: Val, rhs: Val):
        super().__init__(lhs.ty)
        self.bin_type = bin_type
        self.add_operand(lhs)
        self.add_operand(rhs)

    def instr_print(self) -> str:
        return (
            f"{self.name} = {self.bin_type.value} {self.ty.type_name()} "
            f"{self.operand(0).usee.name}, {self.operand(1).usee.name}"
        )

    def calculate(self, values: Sequence[ImmValue]) -> ImmValue:
        _expect_count(values, 2)
        return _BIN_FOLD[self.bin_type](values[0], values[1])


# ---------------------------------------------------------------- control flow


class LabelInstr(Instr):
    instr_type = InstrType.LABEL

    def __init__(self) -> None:
        super().__init__(IrType(IrKind.LABEL))

    def instr_print(self) -> str:
        return f"{self.name}:"


class BrInstr(Instr):
    instr_type = InstrType.BR

    def __init__(self, to: Instr):
        super().__init__(IrType(IrKind.BR))
        self.add_operand(to)

    def instr_print(self) -> str:
        return f"br label %{self.operand(0).usee.name}"


class BrCondInstr(Instr):
    instr_type = InstrType.BR_COND

    def __init__(self, cond: Val, true_to: Instr, false_to: Instr):
        super().__init__(IrType(IrKind.BR_COND))
        self.add_operand(cond)
        self.add_operand(true_to)
        self.add_operand(false_to)

    def instr_print(self) -> str:
        cond = self.operand(0).usee
        return (
            f"br {cond.ty.type_name()} {cond.name}, "
            f"label %{self.operand(1).usee.name}, label %{self.operand(2).usee.name}"
        )

    def select(self, cond: bool) -> BrInstr:
        """An unconditional branch: False keeps the true target, True the false one."""
        return BrInstr(self.operand(int(bool(cond)) + 1).usee)


# ---------------------------------------------------------------- memory


class AllocInstr(Instr):
    instr_type = InstrType.ALLOCA

    def __init__(self, ty: Type):
        super().__init__(PointerType(ty))

    def instr_print(self) -> str:
        return f"{self.name} = alloca {self.ty.pointee.type_name()}"


class LoadInstr(Instr):
    instr_type = InstrType.LOAD

    def __init__(self, source: Val):
        if not isinstance(source.ty, PointerType):
            raise TypeError(f"cannot load from {source.ty.type_name()}")
        super().__init__(source.ty.pointee)
        self.add_operand(source)

    def instr_print(self) -> str:
        source = self.operand(0).usee
        return (
            f"{self.name} = load {self.ty.type_name()}, "
            f"{source.ty.type_name()} {source.name}"
        )


class StoreInstr(Instr):
    instr_type = InstrType.STORE

    def __init__(self, to: Val, value: Val):
        super().__init__(IrType(IrKind.STORE))
        self.add_operand(to)
        self.add_operand(value)

    def instr_print(self) -> str:
        to = self.operand(0).usee
        value = self.operand(1).usee
        return (
            f"store {to.ty.pointee.type_name()} {value.name}, "
            f"{to.ty.type_name()} {to.name}"
        )


# ---------------------------------------------------------------- phi


class PhiInstr(Instr):
    """Operands alternate value, label, value, label, ..."""

    instr_type = InstrType.PHI

    def __init__(self, ty: Type):
        if ty.kind is TypeKind.VOID:
            raise TypeError("a phi instruction must have a non-void type")
        super().__init__(ty)

    def pairs(self) -> list[tuple[Instr, Val]]:
        """The incoming (label, value) pairs in order."""
        ops = self.operands
        return [(ops[i + 1].usee, ops[i].usee) for i in range(0, len(ops) - 1, 2)]

    def instr_print(self) -> str:
        incoming = ", ".join(f"[ {val.name}, %{label.name} ]" for label, val in self.pairs())
        return f"{self.name} = phi {self.ty.type_name()} {incoming}".rstrip()

    def add_incoming(self, label: Instr, val: Val) -> None:
        if not is_same_type(val.ty, self.ty):
            raise TypeError("operand must have the type of the phi node")
        self.add_operand(val)
        self.add_operand(label)

    def change_phi_label(self, index: int, label: Instr) -> None:
        self.change_operand(2 * index + 1, label)

    def remove(self, label: Instr) -> None:
        """Drop the pairs coming from `label`; a phi left with a single pair
        is replaced by its value and erased from its block."""
        i = 0
        while i + 1 < len(self.operands):
            if self.operand(i + 1).usee is label:
                self.release_operand(i)
                self.release_operand(i)
            else:
                i += 2
        if len(self.operands) == 2:
            self.replace_self(self.operand(0).usee)
            if self.block is not None:
                self.block.erase(self)


# ---------------------------------------------------------------- addressing


def ex_shell(ty: Type, count: int) -> tuple[PointerType, bool]:
    """Result type of indexing pointer `ty` with `count` indices, and whether
    the base is a local array (addressed with a leading zero index)."""
    if not isinstance(ty, PointerType):
        raise TypeError(f"cannot index {ty.type_name()}")
    t = ty.pointee
    from_local = True
    for i in range(count):
        if not is_array(t):
            if i != count - 1:
                raise ValueError("not a right dimension")
            from_local = False
            break
        t = t.elem
    return PointerType(t), from_local


class ItemInstr(Instr):
    instr_type = InstrType.ITEM

    def __init__(self, val: Val, indices: Sequence[Val]):
        ty, self.get_from_local = ex_shell(val.ty, len(indices))
        super().__init__(ty)
        self.add_operand(val)
        for index in indices:
            self.add_operand(index)

    def instr_print(self) -> str:
        base = self.operand(0).usee
        parts = [
            f"{self.name} = getelementptr {base.ty.pointee.type_name()}, "
            f"{base.ty.type_name()} {base.name}"
        ]
        if self.get_from_local:
            parts.append("i32 0")
        parts.extend(f"{u.usee.ty.type_name()} {u.usee.name}" for u in self.operands[1:])
        return ", ".join(parts)


class MiniGepInstr(Instr):
    """Single-index element addressing; `in_this_dim` keeps the pointer type."""

    instr_type = InstrType.MINI_GEP

    def __init__(self, val: Val, index: Val, in_this_dim: bool = False):
        if in_this_dim:
            ty = val.ty
        else:
            pointee = val.ty.pointee
            if not isinstance(pointee, ArrayType):
                raise TypeError(f"cannot step into {pointee.type_name()}")
            ty = PointerType(pointee.elem)
        super().__init__(ty)
        self.in_this_dim = in_this_dim
        self.add_operand(val)
        self.add_operand(index)

    def instr_print(self) -> str:
        base = self.operand(0).usee
        index = self.operand(1).usee
        text = (
            f"{self.name} = getelementptr {base.ty.pointee.type_name()}, "
            f"{base.ty.type_name()} {base.name}"
        )
        if not self.in_this_dim:
            text += ", i32 0"
        return text + f", {index.ty.type_name()} {index.name}"