"""Constant propagation over basic blocks.

Each block carries a map from instructions to their lattice value: missing
means undefined, ``None`` means not-a-constant (NAC), and an ImmValue is a
known constant. One-dimensional local arrays also track known elements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from bbyyy.imm import ImmValue
from bbyyy.instructions import (
    AllocInstr,
    CalculatableInstr,
    CallInstr,
    CastInstr,
    LoadInstr,
    MiniGepInstr,
    PhiInstr,
    StoreInstr,
)
from bbyyy.ir_values import Const, Instr, InstrType, Val

FILL_ZERO = "__builtin_fill_zero"

Lattice = Optional[ImmValue]


class ConstantMap:
    """Lattice values of instructions plus known elements of local arrays."""

    def __init__(self) -> None:
        self._val: dict[Instr, Lattice] = {}
        self._array_val: dict[Instr, dict[int, ImmValue]] = {}

    def value(self, instr: Instr) -> Lattice:
        """The value of a mapped instruction; None means NAC."""
        try:
            return self._val[instr]
        except KeyError:
            raise KeyError(f"no value for {instr.instr_print()}") from None

    def has_value(self, instr: Instr) -> bool:
        return instr in self._val

    def is_nac(self, instr: Instr) -> bool:
        return self.value(instr) is None

    def set_value(self, instr: Instr, value: Lattice) -> None:
        """Meet a new value into the map: a differing constant becomes NAC."""
        current = self._val.get(instr)
        if current is not None:
            if value is None or current != value:
                self.set_nac(instr)
        else:
            self._val[instr] = value

    def set_nac(self, instr: Instr) -> None:
        self._val[instr] = None

    def erase(self, instr: Instr) -> None:
        self._val.pop(instr, None)

    def transfer(self, to: Instr, source: Instr) -> None:
        self.set_value(to, self.value(source))

    def known(self) -> Iterator[tuple[Instr, ImmValue]]:
        """The instructions that hold a constant, with that constant."""
        for instr, value in list(self._val.items()):
            if value is not None:
                yield instr, value

    def cup(self, other: ConstantMap) -> None:
        """Merge another map: undef joins to the other side, equal constants
        stay, anything else becomes NAC."""
        for instr, value in other._val.items():
            if instr not in self._val:
                self._val[instr] = value
                continue
            current = self._val[instr]
            if current is None:
                continue
            if value is None or current != value:
                self._val[instr] = None

    def clear(self) -> None:
        self._val.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstantMap):
            return NotImplemented
        if self._val.keys() != other._val.keys():
            return False
        for instr, value in self._val.items():
            theirs = other._val[instr]
            if (value is None) != (theirs is None):
                return False
            if value is not None and value != theirs:
                return False
        return True

    __hash__ = None  # type: ignore[assignment]

    def save_array_value(self, arr: Instr, index: int, value: ImmValue) -> None:
        self._array_val.setdefault(arr, {})[index] = value

    def get_array_value(self, arr: Instr, index: int) -> Optional[ImmValue]:
        return self._array_val.get(arr, {}).get(index)

    def clear_array_value(self, arr: Instr) -> None:
        self._array_val.pop(arr, None)

    def erase_array_values_below(self, arr: Instr, index: int) -> None:
        """Forget the elements whose index is below `index`."""
        elements = self._array_val.setdefault(arr, {})
        for i in [i for i in elements if i < index]:
            del elements[i]


@dataclass(eq=False)
class BlockValue:
    """The data-flow fact attached to a block."""

    val: ConstantMap = field(default_factory=ConstantMap)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockValue):
            return NotImplemented
        return self.val == other.val

    __hash__ = None  # type: ignore[assignment]

    def cup(self, other: BlockValue) -> None:
        self.val.cup(other.val)

    def clear(self) -> None:
        self.val.clear()


class ValState(Enum):
    UNDEF = "undef"
    VALUE = "value"
    NAC = "nac"


@dataclass
class ValResult:
    state: ValState = ValState.UNDEF
    value: Optional[ImmValue] = None


_NAC = ValResult(ValState.NAC)
_UNDEF = ValResult(ValState.UNDEF)


def read_val(val: Val, block_value: BlockValue) -> ValResult:
    """The lattice value of an operand in the current state."""
    if isinstance(val, Const):
        if val.is_imm:
            return ValResult(ValState.VALUE, val.imm_value)
        return _NAC
    if isinstance(val, Instr):
        cmap = block_value.val
        if cmap.has_value(val):
            known = cmap.value(val)
            return _NAC if known is None else ValResult(ValState.VALUE, known)
        if val.instr_type in (InstrType.SYM, InstrType.MINI_GEP):
            return _NAC
        return _UNDEF
    return _NAC


def _fill_val(instr: Instr, res: ValResult, v: BlockValue) -> None:
    if res.state is ValState.NAC:
        v.val.set_nac(instr)
    elif res.state is ValState.VALUE:
        v.val.set_value(instr, res.value)


def _when_store(store: StoreInstr, v: BlockValue) -> None:
    to = store.operand(0).usee
    val = store.operand(1).usee
    if not isinstance(to, Instr):
        return
    if to.instr_type is InstrType.ALLOCA:
        _fill_val(to, read_val(val, v), v)
        return
    if to.instr_type is not InstrType.MINI_GEP:
        return
    target = to.operand(0).usee
    index = to.operand(1).usee
    if not isinstance(target, AllocInstr):
        return
    if not isinstance(index, Const):
        v.val.set_nac(target)
        return
    if v.val.has_value(target) and v.val.is_nac(target):
        v.val.set_nac(to)
        v.val.clear_array_value(target)
        return
    index_val = int(index.imm_value.value)
    res = read_val(val, v)
    if res.state is ValState.VALUE:
        v.val.save_array_value(target, index_val, res.value)
    elif res.state is ValState.NAC:
        v.val.set_nac(to)
        v.val.clear_array_value(target)


def _when_load(load: LoadInstr, v: BlockValue) -> None:
    _fill_val(load, read_val(load.operand(0).usee, v), v)


def _when_phi(phi: PhiInstr, v: BlockValue) -> None:
    for _, val in phi.pairs():
        _fill_val(phi, read_val(val, v), v)
        if not v.val.has_value(phi):
            v.val.set_nac(phi)
            break
        if v.val.is_nac(phi):
            break


def _when_calculatable(cal: CalculatableInstr, v: BlockValue) -> None:
    values = []
    for use in cal.operands:
        res = read_val(use.usee, v)
        if res.state is ValState.NAC:
            v.val.set_nac(cal)
            return
        if res.state is ValState.UNDEF:
            return
        values.append(res.value)
    v.val.set_value(cal, cal.calculate(values))


def _disable_minigep(oprd: Val, v: BlockValue) -> None:
    while isinstance(oprd, MiniGepInstr):
        oprd = oprd.operand(0).usee
    if isinstance(oprd, AllocInstr):
        v.val.set_nac(oprd)


def _when_call(call: CallInstr, v: BlockValue) -> None:
    v.val.set_nac(call)
    if call.operand(0).usee.name == FILL_ZERO:
        length = call.operand(2).usee
        if not isinstance(length, Const):
            _disable_minigep(call.operand(1).usee, v)
            return
        arr = call.operand(1).usee
        if isinstance(arr, CastInstr):
            arr = arr.operand(0).usee
        if not isinstance(arr, AllocInstr):
            return
        v.val.erase_array_values_below(arr, int(length.imm_value.value))
        return
    for use in call.operands:
        _disable_minigep(use.usee, v)


class TransferFunction:
    """Evaluates a block forwards and folds known constants afterwards."""

    def apply(self, block, value: BlockValue) -> None:
        for instr in block:
            if isinstance(instr, PhiInstr):
                _when_phi(instr, value)
            elif isinstance(instr, StoreInstr):
                _when_store(instr, value)
            elif isinstance(instr, LoadInstr):
                _when_load(instr, value)
            elif isinstance(instr, CallInstr):
                _when_call(instr, value)
            elif isinstance(instr, CalculatableInstr):
                _when_calculatable(instr, value)

    def rewrite(self, block, in_value: BlockValue, out_value: BlockValue) -> int:
        """Replace every constant-valued instruction of `block` by its
        constant; returns how many were replaced."""
        replaced = 0
        for instr, val in list(out_value.val.known()):
            if instr.instr_type in (InstrType.ALLOCA, InstrType.MINI_GEP):
                continue
            if instr.block is not block:
                continue
            instr.replace_self(block.add_imm(val))
            replaced += 1
        return replaced