"""Stack frame layout and register-allocation bookkeeping of the back end."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional


def _align_up(value: int, alignment: int) -> int:
    remainder = value % alignment
    return value if remainder == 0 else value + alignment - remainder


@dataclass
class StackObject:
    """A slot in the frame: its offset from the frame top and its size."""

    offset: int
    size: int


@dataclass
class StackFrame:
    """Frame layout, from the top: return address, locals and spills, then
    saved registers, and finally the outgoing arguments that did not fit in
    registers."""

    ra: StackObject = field(default_factory=lambda: StackObject(8, 8))
    offset: int = 8
    locals: list[StackObject] = field(default_factory=list)
    args: int = 0

    def push(self, size: int) -> int:
        """Reserve a slot of the given size and return its index."""
        index = len(self.locals)
        if size >= 8:
            self.offset = _align_up(self.offset, 8)
        if size >= 16:
            self.offset = _align_up(self.offset, 16)
        self.offset += size
        self.locals.append(StackObject(self.offset, size))
        return index

    def spill_args(self, spilled: int) -> None:
        """Make room for at least this many stack-passed arguments."""
        self.args = max(self.args, spilled)

    def size(self) -> int:
        """Total frame size, kept 16-byte aligned."""
        return _align_up(_align_up(self.offset, 8) + self.args * 8, 16)


@dataclass(eq=False)
class LiveRange:
    """A half-open range of instruction numbers in which a register is live."""

    from_num: int
    to_num: int
    instr_cnt: int = 0
    block: Optional[Block] = None

    def conflict(self, other: LiveRange) -> bool:
        return (
            (other.from_num <= self.from_num < other.to_num)
            or (other.from_num < self.to_num <= other.to_num)
            or (self.from_num <= other.from_num and self.to_num >= other.to_num)
        )

    def __lt__(self, other: LiveRange) -> bool:
        return (self.from_num, self.to_num) < (other.from_num, other.to_num)


class AllocStatus(IntEnum):
    """Stages an allocation passes through; later stages rank higher."""

    NEW = 0
    ASSIGN = 1
    SPLIT = 2
    SPILL = 3
    MEMORY = 4
    DONE = 5


@dataclass
class PrioritizedAlloc:
    """An allocation number ordered by its priority tuple."""

    alloc_num: int
    priority: tuple[AllocStatus, int, int, bool]

    def __lt__(self, other: PrioritizedAlloc) -> bool:
        return self.priority < other.priority


@dataclass
class RegisterNumbering:
    """Maps IR register numbers onto fresh virtual machine registers."""

    mapping: dict[int, int] = field(default_factory=dict)
    _next: int = 0

    def preprocess(self, arg_count: int) -> None:
        """Arguments keep their own numbers; new registers follow them."""
        for i in range(arg_count):
            self.mapping[i] = i
        self._next = arg_count

    def convert_reg(self, x: int) -> int:
        if x not in self.mapping:
            self.mapping[x] = self.next_reg()
        return self.mapping[x]

    def next_reg(self) -> int:
        reg = self._next
        self._next += 1
        return reg


@dataclass(eq=False)
class Block:
    """A machine-level basic block with its edges and register sets."""

    name: str
    body: list[Any] = field(default_factory=list)
    in_blocks: list[Block] = field(default_factory=list)
    out_blocks: list[Block] = field(default_factory=list)
    defs: set[Any] = field(default_factory=set)
    uses: set[Any] = field(default_factory=set)