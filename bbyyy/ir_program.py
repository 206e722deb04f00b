"""Basic blocks, function bodies, functions and modules of the IR."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Union

from bbyyy.imm import ImmValue
from bbyyy.instructions import (
    BrCondInstr,
    BrInstr,
    LabelInstr,
    PhiInstr,
    RetInstr,
    UnreachableInstr,
)
from bbyyy.ir_values import (
    Const,
    ConstPool,
    FunctionType,
    Global,
    Instr,
    InstrType,
    IrKind,
    IrType,
    Type,
    TypeKind,
    Val,
    ValType,
    release_user,
)

_log = logging.getLogger(__name__)

_BRANCHES = (InstrType.BR, InstrType.BR_COND)


def _is_label(instr: Instr) -> bool:
    return isinstance(instr.ty, IrType) and instr.ty.ir is IrKind.LABEL


def _unique(items) -> list:
    seen: list = []
    for item in items:
        if not any(item is s for s in seen):
            seen.append(item)
    return seen


class RegGenerator:
    """Hands out sequential register names (%n) and label names (Ln)."""

    def __init__(self) -> None:
        self._reg_line = 0
        self._label_line = 0

    def _next_reg(self) -> str:
        name = f"%{self._reg_line}"
        self._reg_line += 1
        return name

    def generate_params(self, params: Sequence[Val]) -> None:
        for param in params:
            param.name = self._next_reg()

    def generate(self, body: Sequence[Instr]) -> None:
        """Name unnamed instructions and rename generated ones."""
        for instr in body:
            if instr.has_name and instr.name[0] not in "L%":
                continue
            kind = instr.ty.kind
            if kind is TypeKind.IR:
                if instr.ty.ir is IrKind.LABEL:
                    instr.name = f"L{self._label_line}"
                    self._label_line += 1
            elif kind in (TypeKind.BASIC, TypeKind.COMPOUND):
                instr.name = self._next_reg()


class Block:
    """A basic block: a label, its instructions and a terminator."""

    def __init__(self, program: Optional[BlockedProgram] = None):
        self.program = program
        self.body: list[Instr] = []

    @property
    def name(self) -> str:
        if self.body and _is_label(self.body[0]):
            return self.body[0].name
        return ""

    def __iter__(self) -> Iterator[Instr]:
        return iter(self.body)

    def __len__(self) -> int:
        return len(self.body)

    def __repr__(self) -> str:
        return f"<Block {self.name or '?'}>"

    def append(self, instr: Instr) -> None:
        instr.block = self
        self.body.append(instr)

    def label(self) -> LabelInstr:
        if not self.body or not isinstance(self.body[0], LabelInstr):
            raise ValueError("block does not start with a label")
        return self.body[0]

    def push_behind_end(self, instr: Instr) -> None:
        """Insert just before the terminator."""
        instr.block = self
        self.body.insert(len(self.body) - 1, instr)

    def push_after_label(self, instr: Instr) -> None:
        instr.block = self
        self.body.insert(1, instr)

    def add_imm(self, value: Union[ImmValue, Const]) -> Const:
        if self.program is None:
            raise ValueError("block belongs to no program")
        return self.program.add_imm(value)

    def erase(self, instr: Instr) -> None:
        """Remove an instruction and release its operands."""
        for i, current in enumerate(self.body):
            if current is instr:
                del self.body[i]
                release_user(instr)
                instr.block = None
                return
        raise ValueError("instruction is not in this block")

    def erase_from_phi(self) -> None:
        """Drop this block's incoming pairs from every phi that names it."""
        label = self.label()
        for use in list(label.users):
            if isinstance(use.user, PhiInstr):
                use.user.remove(label)

    def squeeze_out(self, selected: bool) -> None:
        """Turn the conditional terminator into an unconditional branch that
        keeps the target `not selected` picks, and drop the other edge."""
        origin = self.body[-1] if self.body else None
        if not isinstance(origin, BrCondInstr):
            raise ValueError("block does not end in a conditional branch")
        removed = origin.operand(int(bool(selected)) + 1).usee
        label = self.label()
        for use in list(label.users):
            phi = use.user
            if isinstance(phi, PhiInstr) and phi.block is removed.block:
                phi.remove(label)
        new_br = origin.select(not selected)
        self.body.pop()
        release_user(origin)
        origin.block = None
        self.append(new_br)

    def replace_in(self, before: Block, new_in: Block) -> None:
        """Make phis that came from `before` come from `new_in`."""
        for instr in self.body:
            if not isinstance(instr, PhiInstr):
                continue
            for i, (label, _) in enumerate(instr.pairs()):
                if label.block is before:
                    instr.change_phi_label(i, new_in.label())
                    break

    def replace_out(self, before: Block, out: Block) -> None:
        """Retarget the terminator's edge to `before` onto `out`."""
        last = self.body[-1]
        if last.instr_type is InstrType.BR:
            last.change_operand(0, out.label())
            return
        if last.instr_type is InstrType.BR_COND:
            replaced = False
            for i in (1, 2):
                if last.operand(i).usee is before.label():
                    last.change_operand(i, out.label())
                    replaced = True
            if not replaced:
                raise ValueError(
                    f"block {self.name} does not branch to {before.name}"
                )
            return
        raise ValueError(f"block {self.name} does not end in a branch")

    def connect_in_and_out(self) -> None:
        """Bypass this single-exit block: predecessors jump straight to its
        successor, whose phis are updated accordingly."""
        outs = self.out_blocks()
        if not outs:
            raise ValueError(f"block {self.name} has no successor")
        out_block = outs[0]
        preds = self.in_blocks()
        if not preds:
            raise ValueError(f"block {self.name} has no predecessor")
        labels = _unique(block.label() for block in preds)
        for block in preds:
            block.replace_out(self, out_block)
        own = self.label()
        for instr in list(out_block.body):
            if not isinstance(instr, PhiInstr):
                continue
            branch_value = None
            for i, (label, val) in enumerate(instr.pairs()):
                if label is own:
                    instr.change_phi_label(i, labels[0])
                    branch_value = val
                    break
            for label in labels[1:]:
                instr.add_incoming(label, branch_value)

    def in_blocks(self) -> list[Block]:
        return _unique(
            use.user.block
            for use in self.label().users
            if isinstance(use.user, Instr) and use.user.instr_type in _BRANCHES
        )

    def out_blocks(self) -> list[Block]:
        last = self.body[-1]
        if last.instr_type is InstrType.BR:
            return [last.operand(0).usee.block]
        if last.instr_type is InstrType.BR_COND:
            return _unique([last.operand(1).usee.block, last.operand(2).usee.block])
        return []

    def print_block(self) -> str:
        if not self.body:
            raise ValueError("cannot print an empty block")
        return "\n    ".join(instr.instr_print() for instr in self.body) + "\n"


class BlockedProgram:
    """A function body split into basic blocks."""

    def __init__(self) -> None:
        self.name = ""
        self.blocks: list[Block] = []
        self.params: list[Val] = []
        self.cpool = ConstPool()

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    def initialize(
        self,
        name: str,
        instrs: Sequence[Instr],
        params: Sequence[Val],
        cpool: ConstPool,
    ) -> None:
        """Name everything and cut the instruction list at each label."""
        self.name = name
        generator = RegGenerator()
        generator.generate_params(params)
        generator.generate(instrs)
        self.params = list(params)
        self.cpool = cpool
        for instr in instrs:
            if _is_label(instr):
                self.blocks.append(Block(self))
            if not self.blocks:
                raise ValueError("instructions must start with a label")
            self.blocks[-1].append(instr)

    def add_imm(self, value: Union[ImmValue, Const]) -> Const:
        return self.cpool.add(value)

    def re_generate(self) -> None:
        generator = RegGenerator()
        generator.generate_params(self.params)
        for block in self.blocks:
            generator.generate(block.body)

    def has_calls(self) -> bool:
        return any(
            instr.instr_type is InstrType.CALL
            for block in self.blocks
            for instr in block
        )

    def check_invalid_phi(self, state: str) -> bool:
        """True if some phi has an odd operand count or misses a predecessor."""
        for block in self.blocks:
            for instr in block:
                if not isinstance(instr, PhiInstr):
                    continue
                if len(instr.operands) % 2:
                    _log.warning("in state %s: invalid phi in %s", state, instr.name)
                    return True
                incoming = [label for label, _ in instr.pairs()]
                missing = [
                    pred
                    for pred in block.in_blocks()
                    if not any(pred.label() is label for label in incoming)
                ]
                if missing:
                    _log.warning("in state %s: wrong phi in %s", state, instr.name)
                    return True
        return False

    def check_empty_use(self, state: str) -> bool:
        for block in self.blocks:
            for instr in block:
                if any(use is None for use in instr.users):
                    _log.warning("in state %s: empty use in %s", state, instr.name)
                    return True
        return False


class Func(Val):
    """A function; declared functions only carry a name and a type."""

    val_type = ValType.FUNC

    def __init__(
        self,
        name: str,
        ret_type: Type,
        arg_types: Sequence[Type] = (),
        variant_length: bool = False,
    ):
        super().__init__(FunctionType(ret_type, tuple(arg_types), variant_length))
        self.name = name

    def function_type(self) -> FunctionType:
        return self.ty

    def print_func_declaration(self) -> str:
        args = [t.type_name() for t in self.ty.arg_type]
        if self.ty.variant_length:
            args.append("...")
        return f"declare {self.ty.ret_type.type_name()} @{self.name}({', '.join(args)})"


class FuncDefined(Func):
    """A function with a body."""

    def __init__(
        self,
        name: str,
        ret_type: Type,
        arg_types: Sequence[Type] = (),
        arg_names: Sequence[str] = (),
    ):
        super().__init__(name, ret_type, arg_types)
        self.arg_names = list(arg_names)
        self.program = BlockedProgram()

    def end_function(self, context: FunctionContext) -> None:
        """Close the body, hoist allocas into an entry block and build blocks."""
        body = context.body
        if not body or body[-1].instr_type is not InstrType.RET:
            if self.ty.ret_type.kind is TypeKind.VOID:
                body.append(RetInstr())
            else:
                body.append(UnreachableInstr())
        allocas = [i for i in body if i.instr_type is InstrType.ALLOCA]
        rest = [i for i in body if i.instr_type is not InstrType.ALLOCA]
        final = [LabelInstr(), *allocas, BrInstr(body[0]), *rest]
        params, cpool = context.params, context.cpool
        context.body = []
        context.params = []
        context.cpool = ConstPool()
        self.program.initialize(self.name, final, params, cpool)

    def print_func(self) -> str:
        if not self.program.blocks:
            raise ValueError("function has no block")
        args = ", ".join(
            f"{t.type_name()} {p.name}"
            for t, p in zip(self.ty.arg_type, self.program.params)
        )
        header = f"define {self.ty.type_name()} @{self.name}({args}) {{\n"
        return header + "".join(b.print_block() for b in self.program) + "}\n"


@dataclass
class FunctionContext:
    """The body of the function being built, before it is split into blocks."""

    cpool: ConstPool = field(default_factory=ConstPool)
    body: list[Instr] = field(default_factory=list)
    args: list[Instr] = field(default_factory=list)
    params: list[Instr] = field(default_factory=list)
    func_type: Optional[FunctionType] = None

    def clear(self) -> None:
        self.cpool.clear()
        self.body.clear()
        self.args.clear()
        self.params.clear()
        self.func_type = None

    def init(self, func: FuncDefined) -> None:
        """Start a body: a label, then a stack slot holding each argument."""
        from bbyyy.instructions import AllocInstr, StoreInstr
        from bbyyy.ir_values import make_sym_instr

        self.clear()
        self.func_type = func.function_type()
        self.body.append(LabelInstr())
        for arg_ty, arg_name in zip(self.func_type.arg_type, func.arg_names):
            sym = make_sym_instr("%" + arg_name, arg_ty)
            slot = AllocInstr(arg_ty)
            self.body.append(slot)
            self.body.append(StoreInstr(slot, sym))
            self.params.append(sym)
            self.args.append(slot)


@dataclass
class Module:
    """A translation unit: declarations, globals and defined functions."""

    funs_defined: list[FuncDefined] = field(default_factory=list)
    funs_declared: list[Func] = field(default_factory=list)
    globs: list[Global] = field(default_factory=list)
    funs_cache: set = field(default_factory=set)

    def add_func(self, func: FuncDefined) -> None:
        self.funs_defined.append(func)

    def add_func_declaration(self, func: Func) -> None:
        self.funs_declared.append(func)

    def add_global(self, glob: Global) -> None:
        self.globs.append(glob)

    def print_module(self) -> str:
        parts = [f.print_func_declaration() + "\n" for f in self.funs_declared]
        parts += [g.print_global() + "\n" for g in self.globs]
        parts.append("\n")
        parts += [f.print_func() + "\n" for f in self.funs_defined]
        return "".join(parts)

    def remove_unused_function(self) -> None:
        """Drop defined functions that are never called, except main."""
        self.funs_defined = [
            f
            for f in self.funs_defined
            if f in self.funs_cache or f.users or f.name == "main"
        ]

    def remove_unused_global(self) -> None:
        self.globs = [g for g in self.globs if g.users]