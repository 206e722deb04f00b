"""Dead store elimination: a backward liveness analysis over stack slots."""

from __future__ import annotations

from dataclasses import dataclass, field

from bbyyy.ir_values import Global, Instr, InstrType, Val


@dataclass(eq=False)
class BlockValue:
    """The set of memory locations that may still be read."""

    uses: set[Val] = field(default_factory=set)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockValue):
            return NotImplemented
        return self.uses == other.uses

    __hash__ = None  # type: ignore[assignment]

    def cup(self, other: BlockValue) -> None:
        self.uses |= other.uses

    def clear(self) -> None:
        self.uses.clear()


def _is_non_alloca_instr(val: Val) -> bool:
    return isinstance(val, Instr) and val.instr_type is not InstrType.ALLOCA


class TransferFunction:
    """Walks a block backwards: loads make a location live, stores kill it."""

    def apply(self, block, value: BlockValue) -> None:
        for instr in reversed(list(block)):
            kind = instr.instr_type
            if kind is InstrType.LOAD:
                value.uses.add(instr.operand(0).usee)
            elif kind is InstrType.STORE:
                to = instr.operand(0).usee
                if _is_non_alloca_instr(to):
                    continue
                value.uses.discard(to)
            elif kind in (InstrType.ITEM, InstrType.MINI_GEP):
                value.uses.add(instr.operand(0).usee)

    def rewrite(self, block, in_value: BlockValue, out_value: BlockValue) -> int:
        """Erase stores to stack slots that are never read again; returns
        how many were erased."""
        uses = set(out_value.uses)
        erased = 0
        for instr in reversed(list(block)):
            kind = instr.instr_type
            if kind is InstrType.LOAD:
                uses.add(instr.operand(0).usee)
            elif kind is InstrType.STORE:
                to = instr.operand(0).usee
                if _is_non_alloca_instr(to) or isinstance(to, Global):
                    continue
                if to in uses:
                    uses.discard(to)
                else:
                    block.erase(instr)
                    erased += 1
        return erased