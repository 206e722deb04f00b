import pytest

from bbyyy.backend_types import (
    BranchInstrType,
    FCmpInstrType,
    FReg,
    FRegInstrType,
    RegFRegInstrType,
    RegImmInstrType,
    RegInstrType,
    RegRegInstrType,
    freg_is_virtual,
    freg_name,
)


def test_branch_mnemonics():
    names = ["beq", "bne", "blt", "bge", "bgt", "ble"]
    looked_up = [BranchInstrType(name) for name in names]
    assert looked_up == list(BranchInstrType)
    assert [str(t) for t in looked_up] == names


def test_float_mnemonics():
    assert FCmpInstrType("feq.s") is FCmpInstrType.FEQ_S
    assert FRegInstrType("fneg.s") is FRegInstrType.FNEG_S
    assert RegFRegInstrType("fcvt.w.s") is RegFRegInstrType.FCVT_W_S
    assert str(FCmpInstrType("feq.s")) == "feq.s"


def test_reg_mnemonics():
    assert RegInstrType("seqz") is RegInstrType.SEQZ
    assert RegImmInstrType("sraiw") is RegImmInstrType.SRAIW
    assert RegRegInstrType("remw") is RegRegInstrType.REMW
    assert str(RegRegInstrType("remw")) == "remw"


@pytest.mark.parametrize(
    "enum_cls",
    [
        BranchInstrType,
        FCmpInstrType,
        FRegInstrType,
        RegFRegInstrType,
        RegImmInstrType,
        RegInstrType,
        RegRegInstrType,
    ],
)
def test_mnemonic_round_trip(enum_cls):
    for member in enum_cls:
        assert enum_cls(str(member)) is member


def test_declaration_order_kept():
    assert list(RegImmInstrType)[0] is RegImmInstrType("addi")
    assert list(RegImmInstrType)[-1] is RegImmInstrType("slti")
    assert list(RegRegInstrType)[-1] is RegRegInstrType("slt")


def test_freg_physical_names():
    assert freg_name(FReg.FT0) == "ft0"
    assert freg_name(FReg.FA0) == "fa0"
    assert freg_name(FReg.FS11) == "fs11"
    assert freg_name(FReg.FT11) == "ft11"


def test_freg_names_are_unique():
    names = {freg_name(r) for r in FReg}
    assert len(names) == len(FReg)


def test_physical_registers_are_not_virtual():
    assert not any(freg_is_virtual(r) for r in FReg)


@pytest.mark.parametrize("n", [0, 3, 100])
def test_virtual_register_name(n):
    assert freg_is_virtual(~n)
    assert freg_name(~n) == f"%{n}"


def test_register_beyond_range_is_virtual():
    assert freg_is_virtual(len(FReg))
    assert freg_name(len(FReg)).startswith("%")


def test_freg_str_matches_name():
    for r in FReg:
        assert str(r) == freg_name(int(r))