from bbyyy.dse import BlockValue, TransferFunction
from bbyyy.imm import ImmType, ImmValue
from bbyyy.instructions import (
    AllocInstr,
    LabelInstr,
    LoadInstr,
    MiniGepInstr,
    RetInstr,
    StoreInstr,
)
from bbyyy.ir_program import Block, BlockedProgram
from bbyyy.ir_values import ArrayType, BasicType, Const, Global

I32 = BasicType(ImmType.I32)


def _block(*instrs):
    prog = BlockedProgram()
    block = Block(prog)
    prog.blocks.append(block)
    block.append(LabelInstr())
    for instr in instrs:
        block.append(instr)
    return block


def test_block_value_cup_eq_clear():
    a, b = AllocInstr(I32), AllocInstr(I32)
    x = BlockValue({a})
    x.cup(BlockValue({b}))
    assert x == BlockValue({a, b})
    x.clear()
    assert x.uses == set()


def test_apply_store_then_load_keeps_slot_live():
    alloc = AllocInstr(I32)
    block = _block(alloc, StoreInstr(alloc, Const(ImmValue(1))), LoadInstr(alloc), RetInstr())
    v = BlockValue()
    TransferFunction().apply(block, v)
    assert v.uses == set()


def test_apply_load_then_store_leaves_slot_used():
    alloc = AllocInstr(I32)
    block = _block(alloc, LoadInstr(alloc), StoreInstr(alloc, Const(ImmValue(1))), RetInstr())
    v = BlockValue()
    TransferFunction().apply(block, v)
    assert v.uses == {alloc}


def test_apply_gep_uses_base():
    arr = AllocInstr(ArrayType(I32, 3))
    gep = MiniGepInstr(arr, Const(ImmValue(0)))
    v = BlockValue()
    TransferFunction().apply(_block(arr, gep, RetInstr()), v)
    assert v.uses == {arr}


def test_rewrite_removes_overwritten_store():
    alloc = AllocInstr(I32)
    first = StoreInstr(alloc, Const(ImmValue(1)))
    second = StoreInstr(alloc, Const(ImmValue(2)))
    load = LoadInstr(alloc)
    block = _block(alloc, first, second, load, RetInstr(load))
    assert TransferFunction().rewrite(block, BlockValue(), BlockValue()) == 1
    assert all(instr is not first for instr in block)
    assert any(instr is second for instr in block)
    assert all(use.user is not first for use in alloc.users)


def test_rewrite_keeps_store_live_out():
    alloc = AllocInstr(I32)
    store = StoreInstr(alloc, Const(ImmValue(1)))
    block = _block(alloc, store, RetInstr())
    assert TransferFunction().rewrite(block, BlockValue(), BlockValue({alloc})) == 0
    assert any(instr is store for instr in block)


def test_rewrite_removes_dead_store_with_nothing_live():
    alloc = AllocInstr(I32)
    store = StoreInstr(alloc, Const(ImmValue(1)))
    block = _block(alloc, store, RetInstr())
    assert TransferFunction().rewrite(block, BlockValue(), BlockValue()) == 1
    assert all(instr is not store for instr in block)


def test_rewrite_never_removes_global_or_element_stores():
    glob = Global("g", I32, Const(ImmValue(0)))
    arr = AllocInstr(ArrayType(I32, 3))
    gep = MiniGepInstr(arr, Const(ImmValue(1)))
    to_global = StoreInstr(glob, Const(ImmValue(5)))
    to_element = StoreInstr(gep, Const(ImmValue(6)))
    block = _block(arr, gep, to_global, to_element, RetInstr())
    assert TransferFunction().rewrite(block, BlockValue(), BlockValue()) == 0
    assert any(instr is to_global for instr in block)
    assert any(instr is to_element for instr in block)