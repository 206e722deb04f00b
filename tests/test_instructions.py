import pytest

from bbyyy.imm import ImmError, ImmType, ImmValue
from bbyyy.instructions import (
    AllocInstr,
    BinInstr,
    BinInstrType,
    BrCondInstr,
    BrInstr,
    CallInstr,
    CastInstr,
    CastMethod,
    CmpInstr,
    CmpType,
    ItemInstr,
    LabelInstr,
    LoadInstr,
    MiniGepInstr,
    PhiInstr,
    RetInstr,
    StoreInstr,
    UnaryInstr,
    UnreachableInstr,
    ex_shell,
    get_cast_method,
)
from bbyyy.ir_values import (
    ArrayType,
    BasicType,
    Const,
    FunctionType,
    PointerType,
    VoidType,
    make_sym_instr,
)

I1 = BasicType(ImmType.I1)
I32 = BasicType(ImmType.I32)
I64 = BasicType(ImmType.I64)
F32 = BasicType(ImmType.F32)
F64 = BasicType(ImmType.F64)


def sym(name, ty=I32):
    return make_sym_instr(name, ty)


def named(instr, name):
    instr.name = name
    return instr


def label(name):
    return named(LabelInstr(), name)


@pytest.mark.parametrize(
    "src, dest, method",
    [
        (I32, F32, CastMethod.SITOFP),
        (F32, I32, CastMethod.FPTOSI),
        (I1, I32, CastMethod.ZEXT),
        (I32, I64, CastMethod.SEXT),
        (I64, I32, CastMethod.TRUNC),
        (PointerType(I32), PointerType(F32), CastMethod.BITCAST),
        (PointerType(I32), I64, CastMethod.PTRTOINT),
        (I64, PointerType(I32), CastMethod.INTTOPTR),
        (F32, F64, CastMethod.FPEXT),
        (F64, F32, CastMethod.FPTRUNC),
    ],
)
def test_get_cast_method(src, dest, method):
    assert get_cast_method(src, dest) is method


def test_cast_to_same_type_raises():
    with pytest.raises(ValueError):
        get_cast_method(I32, I32)


def test_uncastable_raises():
    with pytest.raises(TypeError):
        get_cast_method(ArrayType(I32, 2), I32)


def test_cast_print_and_fold():
    x = sym("%1")
    cast = named(CastInstr(F32, x), "%2")
    assert cast.method is CastMethod.SITOFP
    assert cast.instr_print() == f"%2 = sitofp i32 {x.name} to float"
    folded = cast.calculate([ImmValue(3)])
    assert folded.ty is ImmType.F32
    assert folded == ImmValue(3)


def test_cast_fold_wrong_count():
    cast = CastInstr(F32, sym("%1"))
    with pytest.raises(ValueError):
        cast.calculate([])


def test_cmp_print_worked_example():
    cmp = named(CmpInstr(CmpType.SLT, sym("%110"), Const(ImmValue(100))), "%111")
    assert cmp.instr_print() == "%111 = icmp slt i32 %110, 100"
    assert cmp.ty == I1


def test_cmp_float_prints_fcmp():
    cmp = named(CmpInstr(CmpType.OLT, sym("%1", F32), sym("%2", F32)), "%3")
    assert cmp.instr_print().startswith("%3 = fcmp olt float")


@pytest.mark.parametrize(
    "cmp_type, a, b, expected",
    [
        (CmpType.SLT, 1, 2, True),
        (CmpType.SGT, 1, 2, False),
        (CmpType.EQ, 4, 4, True),
        (CmpType.NE, 4, 4, False),
        (CmpType.SLE, 2, 2, True),
        (CmpType.SGE, 1, 2, False),
    ],
)
def test_cmp_fold(cmp_type, a, b, expected):
    cmp = CmpInstr(cmp_type, sym("%1"), sym("%2"))
    result = cmp.calculate([ImmValue(a), ImmValue(b)])
    assert bool(result) is expected
    assert result.ty is ImmType.I1


def test_bin_print_worked_example():
    add = named(BinInstr(BinInstrType.ADD, sym("%109"), sym("%113")), "%114")
    assert add.instr_print() == "%114 = add i32 %109, %113"


@pytest.mark.parametrize(
    "bin_type, a, b",
    [
        (BinInstrType.ADD, 7, 5),
        (BinInstrType.SUB, 7, 5),
        (BinInstrType.MUL, 7, 5),
        (BinInstrType.SDIV, -7, 2),
        (BinInstrType.SREM, -7, 2),
        (BinInstrType.AND, 6, 3),
        (BinInstrType.OR, 6, 3),
        (BinInstrType.XOR, 6, 3),
        (BinInstrType.SHL, 1, 4),
    ],
)
def test_bin_fold_matches_immediate_arithmetic(bin_type, a, b):
    ops = {
        BinInstrType.ADD: lambda x, y: x + y,
        BinInstrType.SUB: lambda x, y: x - y,
        BinInstrType.MUL: lambda x, y: x * y,
        BinInstrType.SDIV: lambda x, y: x / y,
        BinInstrType.SREM: lambda x, y: x % y,
        BinInstrType.AND: lambda x, y: x & y,
        BinInstrType.OR: lambda x, y: x | y,
        BinInstrType.XOR: lambda x, y: x ^ y,
        BinInstrType.SHL: lambda x, y: x << y,
    }
    instr = BinInstr(bin_type, sym("%1"), sym("%2"))
    x, y = ImmValue(a), ImmValue(b)
    assert instr.calculate([x, y]) == ops[bin_type](x, y)


def test_bin_fold_slt_gives_boolean():
    instr = BinInstr(BinInstrType.SLT, sym("%1"), sym("%2"))
    less = instr.calculate([ImmValue(1), ImmValue(2)])
    not_less = instr.calculate([ImmValue(2), ImmValue(1)])
    assert less == ImmValue(1)
    assert not_less == ImmValue(0)


def test_bin_fold_errors():
    div = BinInstr(BinInstrType.SDIV, sym("%1"), sym("%2"))
    with pytest.raises(ZeroDivisionError):
        div.calculate([ImmValue(1), ImmValue(0)])
    frem = BinInstr(BinInstrType.FREM, sym("%1", F32), sym("%2", F32))
    with pytest.raises(ImmError):
        frem.calculate([ImmValue(1.5), ImmValue(1.0)])
    with pytest.raises(ValueError):
        div.calculate([ImmValue(1)])


def test_bin_registers_uses():
    a, b = sym("%1"), sym("%2")
    add = BinInstr(BinInstrType.ADD, a, b)
    assert [u.user for u in a.users] == [add]
    assert [u.user for u in b.users] == [add]
    assert add.ty == a.ty


def test_unary():
    x = sym("%1", F32)
    neg = named(UnaryInstr(x), "%2")
    assert neg.instr_print() == "%2 = fneg float %1"
    v = ImmValue(2.5)
    assert neg.calculate([v]) == -v


def test_control_flow_prints():
    l9, l10, l11 = label("L9"), label("L10"), label("L11")
    assert l9.instr_print() == "L9:"
    assert BrInstr(l9).instr_print() == "br label %L9"
    cond = sym("%111", I1)
    br = BrCondInstr(cond, l10, l11)
    assert br.instr_print() == "br i1 %111, label %L10, label %L11"


def test_select_picks_target():
    t, f = label("L1"), label("L2")
    br = BrCondInstr(sym("%1", I1), t, f)
    assert br.select(False).operand(0).usee is t
    assert br.select(True).operand(0).usee is f


def test_memory_prints():
    alloc = named(AllocInstr(I32), "%1")
    assert alloc.instr_print() == "%1 = alloca i32"
    assert alloc.ty == PointerType(I32)
    ptr = sym("%112", PointerType(I32))
    load = named(LoadInstr(ptr), "%113")
    assert load.instr_print() == "%113 = load i32, i32* %112"
    assert load.ty == I32
    store = StoreInstr(sym("%4", PointerType(I32)), Const(ImmValue(0)))
    assert store.instr_print() == "store i32 0, i32* %4"


def test_call_prints():
    func = sym("fun", FunctionType(I32, (I32, I64)))
    a, b = sym("%1"), sym("%2", I64)
    call = named(CallInstr(func, [a, b]), "%3")
    assert call.instr_print() == f"%3 = call i32 @fun(i32 {a.name}, i64 {b.name})"


def test_void_call_has_no_result_name():
    func = sym("putch", FunctionType(VoidType(), ()))
    call = named(CallInstr(func), "%9")
    assert call.instr_print() == "call void @putch()"


def test_call_argument_mismatch():
    func = sym("fun", FunctionType(I32, (I32,)))
    call = CallInstr(func, [])
    with pytest.raises(ValueError):
        call.instr_print()


def test_ret_and_unreachable():
    assert RetInstr().instr_print() == "ret void"
    x = sym("%5")
    assert RetInstr(x).instr_print() == f"ret i32 {x.name}"
    assert UnreachableInstr().instr_print() == "unreachable"


def test_phi_worked_example():
    phi = named(PhiInstr(I32), "%indvar")
    phi.add_incoming(label("LoopHeader"), Const(ImmValue(0)))
    phi.add_incoming(label("Loop"), sym("%nextindvar"))
    assert phi.instr_print() == "%indvar = phi i32 [ 0, %LoopHeader ], [ %nextindvar, %Loop ]"


def test_phi_rejects_mismatched_type():
    phi = PhiInstr(I32)
    with pytest.raises(TypeError):
        phi.add_incoming(label("L1"), sym("%1", F32))


def test_phi_remove_keeps_other_pairs():
    phi = PhiInstr(I32)
    l1, l2, l3 = label("L1"), label("L2"), label("L3")
    v1, v2, v3 = sym("%1"), sym("%2"), sym("%3")
    phi.add_incoming(l1, v1)
    phi.add_incoming(l2, v2)
    phi.add_incoming(l3, v3)
    phi.remove(l2)
    assert phi.pairs() == [(l1, v1), (l3, v3)]
    assert v2.users == []
    assert l2.users == []


def test_phi_with_one_pair_left_is_replaced():
    phi = PhiInstr(I32)
    l1, l2 = label("L1"), label("L2")
    v1, v2 = sym("%1"), sym("%2")
    phi.add_incoming(l1, v1)
    phi.add_incoming(l2, v2)
    user = BinInstr(BinInstrType.ADD, phi, v2)
    phi.remove(l2)
    assert user.operand(0).usee is v1
    assert phi.users == []


def test_change_phi_label():
    phi = PhiInstr(I32)
    old, new = label("L1"), label("L7")
    v = sym("%1")
    phi.add_incoming(old, v)
    phi.change_phi_label(0, new)
    assert phi.pairs() == [(new, v)]
    assert old.users == []
    assert [u.user for u in new.users] == [phi]


def test_ex_shell_local_array():
    ty, local = ex_shell(PointerType(ArrayType(ArrayType(I32, 2), 2)), 2)
    assert ty == PointerType(I32)
    assert local is True


def test_ex_shell_parameter_array():
    ty, local = ex_shell(PointerType(ArrayType(I32, 2)), 2)
    assert ty == PointerType(I32)
    assert local is False


def test_ex_shell_too_many_dimensions():
    with pytest.raises(ValueError):
        ex_shell(PointerType(ArrayType(I32, 2)), 3)


def test_item_print_worked_example():
    base = sym("%0", PointerType(ArrayType(I32, 100)))
    item = named(ItemInstr(base, [sym("%2")]), "%4")
    assert item.instr_print() == (
        "%4 = getelementptr [100 x i32], [100 x i32]* %0, i32 0, i32 %2"
    )
    assert item.ty == PointerType(I32)


def test_mini_gep_print_worked_example():
    base = sym("%0", PointerType(ArrayType(I32, 100)))
    gep = named(MiniGepInstr(base, sym("%2")), "%4")
    assert gep.instr_print() == (
        "%4 = getelementptr [100 x i32], [100 x i32]* %0, i32 0, i32 %2"
    )
    assert gep.ty == PointerType(I32)


def test_mini_gep_in_this_dim_keeps_type():
    base = sym("%0", PointerType(I32))
    gep = named(MiniGepInstr(base, sym("%2"), True), "%4")
    assert gep.ty == base.ty
    assert gep.instr_print() == "%4 = getelementptr i32, i32* %0, i32 %2"