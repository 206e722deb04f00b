"""IR types, values, the use-def graph, constants and globals."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Sequence, Union

from bbyyy.imm import ImmType, ImmValue, bytes_of_imm_type, is_imm_float
from bbyyy.imm import is_imm_integer, is_imm_signed


class TypeKind(Enum):
    IR = "ir"
    BASIC = "basic"
    COMPOUND = "compound"
    VOID = "void"


class IrKind(Enum):
    LABEL = "label"
    BR = "br"
    BR_COND = "br_cond"
    STORE = "store"
    RET = "ret"
    UNREACHABLE = "unreachable"


_BASIC_NAMES = {
    ImmType.I1: "i1",
    ImmType.U1: "i1",
    ImmType.I8: "i8",
    ImmType.U8: "i8",
    ImmType.I16: "i16",
    ImmType.U16: "i16",
    ImmType.I32: "i32",
    ImmType.U32: "i32",
    ImmType.I64: "i64",
    ImmType.U64: "i64",
    ImmType.F32: "float",
    ImmType.F64: "double",
}


@dataclass(frozen=True)
class BasicType:
    ty: ImmType

    @property
    def kind(self) -> TypeKind:
        return TypeKind.BASIC

    def type_name(self) -> str:
        return _BASIC_NAMES[self.ty]


@dataclass(frozen=True)
class PointerType:
    pointee: "Type"

    @property
    def kind(self) -> TypeKind:
        return TypeKind.COMPOUND

    def type_name(self) -> str:
        return self.pointee.type_name() + "*"


@dataclass(frozen=True)
class ArrayType:
    elem: "Type"
    size: int

    @property
    def kind(self) -> TypeKind:
        return TypeKind.COMPOUND

    def type_name(self) -> str:
        return f"[{self.size} x {self.elem.type_name()}]"


@dataclass(frozen=True)
class FunctionType:
    ret_type: "Type"
    arg_type: tuple = field(default_factory=tuple)
    variant_length: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "arg_type", tuple(self.arg_type))

    @property
    def kind(self) -> TypeKind:
        return TypeKind.COMPOUND

    def type_name(self) -> str:
        """A function is named by its return type, as in a definition header."""
        return self.ret_type.type_name()


@dataclass(frozen=True)
class IrType:
    ir: IrKind

    @property
    def kind(self) -> TypeKind:
        return TypeKind.IR

    def type_name(self) -> str:
        return self.ir.value


@dataclass(frozen=True)
class VoidType:
    @property
    def kind(self) -> TypeKind:
        return TypeKind.VOID

    def type_name(self) -> str:
        return "void"


Type = Union[BasicType, PointerType, ArrayType, FunctionType, IrType, VoidType]


def is_pointer(ty: Type) -> bool:
    return isinstance(ty, PointerType)


def is_array(ty: Type) -> bool:
    return isinstance(ty, ArrayType)


def is_float(ty: Type) -> bool:
    return isinstance(ty, BasicType) and is_imm_float(ty.ty)


def is_integer(ty: Type) -> bool:
    return isinstance(ty, BasicType) and is_imm_integer(ty.ty)


def is_signed_type(ty: Type) -> bool:
    return isinstance(ty, BasicType) and is_imm_signed(ty.ty)


def bytes_of_type(ty: Type) -> int:
    if isinstance(ty, BasicType):
        return bytes_of_imm_type(ty.ty)
    if isinstance(ty, PointerType):
        return 8
    if isinstance(ty, ArrayType):
        return ty.size * bytes_of_type(ty.elem)
    raise TypeError(f"type {ty.type_name()} has no size")


def is_same_type(a: Type, b: Type) -> bool:
    return a == b


class ValType(Enum):
    CONST = "const"
    INSTR = "instr"
    GLOBAL = "global"
    FUNC = "func"


class InstrType(Enum):
    SYM = "sym"
    ALLOCA = "alloca"
    LOAD = "load"
    STORE = "store"
    ITEM = "item"
    MINI_GEP = "mini_gep"
    CALL = "call"
    RET = "ret"
    UNREACHABLE = "unreachable"
    CAST = "cast"
    CMP = "cmp"
    UNARY = "unary"
    BINARY = "binary"
    LABEL = "label"
    BR = "br"
    BR_COND = "br_cond"
    PHI = "phi"


@dataclass(eq=False)
class Use:
    """An edge of the use-def graph: `user` reads `usee`."""

    user: "User"
    usee: "Val"


def _discard(uses: list[Use], use: Use) -> None:
    uses[:] = [u for u in uses if u is not use]


class Val:
    """Anything that can be an operand; tracks the uses that read it."""

    val_type: ValType

    def __init__(self, ty: Type):
        self.ty = ty
        self.name = ""
        self.users: list[Use] = []

    @property
    def has_name(self) -> bool:
        return bool(self.name)

    def replace_self(self, val: Val) -> None:
        """Redirect every use of this value to `val`."""
        if val is self:
            return
        for use in self.users:
            use.usee = val
            val.users.append(use)
        self.users.clear()

    def add_use(self, user: User) -> Use:
        """Record a use without adding an operand to `user`."""
        use = Use(user, self)
        self.users.append(use)
        return use

    def remove_use(self, use: Use) -> bool:
        for i, u in enumerate(self.users):
            if u is use:
                del self.users[i]
                return True
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name or '?'}>"


class User(Val):
    """A value that reads other values through its operands."""

    def __init__(self, ty: Type):
        super().__init__(ty)
        self.operands: list[Use] = []

    def add_operand(self, val: Val) -> Use:
        use = Use(self, val)
        self.operands.append(use)
        val.users.append(use)
        return use

    def change_operand(self, index: int, val: Val) -> None:
        use = self.operands[index]
        _discard(use.usee.users, use)
        use.usee = val
        val.users.append(use)

    def release_operand(self, index: int) -> None:
        use = self.operands.pop(index)
        _discard(use.usee.users, use)

    def release_all_operands(self) -> None:
        for use in self.operands:
            _discard(use.usee.users, use)
        self.operands.clear()

    def operand(self, index: int) -> Use:
        return self.operands[index]


class Instr(User):
    """An instruction; the plain form is a named symbol such as a parameter."""

    val_type = ValType.INSTR
    instr_type = InstrType.SYM

    def __init__(self, ty: Type):
        super().__init__(ty)
        self.block = None

    def instr_print(self) -> str:
        return self.name


def release_val(val: Val) -> None:
    """Detach every use of `val` from the users that hold it."""
    for use in val.users:
        _discard(use.user.operands, use)
    val.users.clear()


def release_user(user: User) -> None:
    """Detach every operand of `user` from the values it reads."""
    for use in user.operands:
        _discard(use.usee.users, use)
    user.operands.clear()


def make_sym_instr(name: str, ty: Type) -> Instr:
    instr = Instr(ty)
    instr.name = name
    return instr


ConstData = Union[ImmValue, None, Sequence]


def _render(value: ConstData, ty: Type) -> str:
    if isinstance(value, ImmValue):
        return value.text()
    if value is None:
        return "zeroinitializer"
    if not isinstance(ty, ArrayType):
        raise ValueError("an aggregate constant needs an array type")
    items = list(value)
    if len(items) > ty.size:
        raise ValueError(f"{len(items)} initializers for {ty.type_name()}")
    filler: ConstData = (
        ImmValue(0, ty.elem.ty) if isinstance(ty.elem, BasicType) else None
    )
    items += [filler] * (ty.size - len(items))
    elem = ty.elem.type_name()
    parts = (f"{elem} {Const(item, ty.elem).name}" for item in items)
    return "[" + ", ".join(parts) + "]"


class Const(Val):
    """A constant: an immediate, a zero initializer (None) or an array of them."""

    val_type = ValType.CONST

    def __init__(self, value: ConstData, ty: Optional[Type] = None):
        if ty is None:
            if not isinstance(value, ImmValue):
                raise ValueError("a non-immediate constant needs a type")
            ty = BasicType(value.ty)
        elif isinstance(value, ImmValue) and isinstance(ty, BasicType):
            value = value.cast_to(ty.ty)
        super().__init__(ty)
        self.value = value
        self.name = _render(value, ty)

    @property
    def is_imm(self) -> bool:
        return isinstance(self.value, ImmValue)

    @property
    def imm_value(self) -> ImmValue:
        if not isinstance(self.value, ImmValue):
            raise TypeError(f"constant {self.name} is not an immediate")
        return self.value


class ConstPool:
    """Interns constants so equal values share one Const."""

    def __init__(self) -> None:
        self._pool: dict[tuple, Const] = {}

    def add(self, value: Union[Const, ImmValue]) -> Const:
        const = value if isinstance(value, Const) else Const(value)
        return self._pool.setdefault((const.ty, const.name), const)

    def clear(self) -> None:
        self._pool.clear()

    def __len__(self) -> int:
        return len(self._pool)

    def __iter__(self) -> Iterator[Const]:
        return iter(self._pool.values())


class Global(Val):
    """A global variable; its value is a pointer to the stored type."""

    val_type = ValType.GLOBAL

    def __init__(self, name: str, ty: Type, con: Const, is_const: bool = False):
        super().__init__(PointerType(ty))
        self.name = "@" + name
        self.con = con
        self.is_const = is_const

    def print_global(self) -> str:
        return f"{self.name} = global {self.ty.pointee.type_name()} {self.con.name}"

    def is_effectively_final(self) -> bool:
        """True when declared constant or never stored to."""
        return self.is_const or not any(
            isinstance(use.user, Instr) and use.user.instr_type is InstrType.STORE
            for use in self.users
        )