"""Machine instruction kinds and float registers of the RISC-V back end."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Union


class _Mnemonic(Enum):
    def __str__(self) -> str:
        return self.value


class BranchInstrType(_Mnemonic):
    BEQ = "beq"
    BNE = "bne"
    BLT = "blt"
    BGE = "bge"
    BGT = "bgt"
    BLE = "ble"


class FCmpInstrType(_Mnemonic):
    FEQ_S = "feq.s"
    FLT_S = "flt.s"
    FLE_S = "fle.s"


class FRegInstrType(_Mnemonic):
    FMV_S = "fmv.s"
    FNEG_S = "fneg.s"


class RegFRegInstrType(_Mnemonic):
    FMV_X_S = "fmv.x.s"
    FCVT_W_S = "fcvt.w.s"


class RegImmInstrType(_Mnemonic):
    ADDI = "addi"
    ADDIW = "addiw"
    SLLI = "slli"
    SLLIW = "slliw"
    SRLI = "srli"
    SRLIW = "srliw"
    SRAI = "srai"
    SRAIW = "sraiw"
    ANDI = "andi"
    ORI = "ori"
    XORI = "xori"
    SLTI = "slti"


class RegInstrType(_Mnemonic):
    MV = "mv"
    NEGW = "negw"
    SEQZ = "seqz"
    SNEZ = "snez"
    SLTZ = "sltz"
    SGTZ = "sgtz"


class RegRegInstrType(_Mnemonic):
    ADD = "add"
    ADDW = "addw"
    SUB = "sub"
    SUBW = "subw"
    MUL = "mul"
    MULW = "mulw"
    DIV = "div"
    DIVW = "divw"
    REM = "rem"
    REMW = "remw"
    SLL = "sll"
    SLLW = "sllw"
    SRL = "srl"
    SRLW = "srlw"
    SRA = "sra"
    SRAW = "sraw"
    AND = "and"
    OR = "or"
    XOR = "xor"
    SLT = "slt"


class FReg(IntEnum):
    """The 32 physical float registers, numbered in encoding order."""

    FT0 = 0
    FT1 = 1
    FT2 = 2
    FT3 = 3
    FT4 = 4
    FT5 = 5
    FT6 = 6
    FT7 = 7
    FS0 = 8
    FS1 = 9
    FA0 = 10
    FA1 = 11
    FA2 = 12
    FA3 = 13
    FA4 = 14
    FA5 = 15
    FA6 = 16
    FA7 = 17
    FS2 = 18
    FS3 = 19
    FS4 = 20
    FS5 = 21
    FS6 = 22
    FS7 = 23
    FS8 = 24
    FS9 = 25
    FS10 = 26
    FS11 = 27
    FT8 = 28
    FT9 = 29
    FT10 = 30
    FT11 = 31

    def __str__(self) -> str:
        return self.name.lower()


def freg_is_virtual(value: Union[FReg, int]) -> bool:
    """Numbers outside 0..31 denote virtual registers."""
    return int(value) < 0 or int(value) >= len(FReg)


def freg_name(value: Union[FReg, int]) -> str:
    """Assembly name of a register; virtual register ~n prints as %n."""
    number = int(value)
    if freg_is_virtual(number):
        return f"%{~number}"
    return str(FReg(number))