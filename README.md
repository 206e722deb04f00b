# bbyyy

Building blocks for a small optimising compiler of the SysY language. The
package has an LLVM-style intermediate representation, some parts of a RISC-V
backend, and the transfer functions of two data-flow optimisations.

## Modules

- `bbyyy.imm`: typed immediate values (`ImmValue`, `ImmType`) with
  C-like arithmetic. Integers wrap to 64 bits, division and remainder
  truncate toward zero, and `F32` values are rounded to single precision.
  Mixed operands are converted to the later of the two `ImmType` members
  (`join_imm_type`). `ImmValue.text()` renders integers in decimal and floats
  as the hex bits of their double-precision value. Helpers:
  `is_imm_signed`, `is_imm_float`, `is_imm_integer`, `bytes_of_imm_type`.
- `bbyyy.backend_types`: RISC-V mnemonic enumerations (`BranchInstrType`,
  `FCmpInstrType`, `FRegInstrType`, `RegFRegInstrType`, `RegImmInstrType`,
  `RegInstrType`, `RegRegInstrType`) and the float registers `FReg`.
  `freg_name` prints the virtual register `~n` as `%n`, and
  `freg_is_virtual` reports whether a number is outside the range 0 to 31.
- `bbyyy.backend_frame`: `StackFrame` lays out aligned local slots and
  outgoing stack arguments and rounds the frame to 16 bytes. The module also
  has `LiveRange` with its overlap test `conflict`, `AllocStatus`,
  `PrioritizedAlloc`, `RegisterNumbering` for mapping IR registers to fresh
  virtual registers, and a machine-level `Block`.
- `bbyyy.ir_values`: IR types (`BasicType`, `PointerType`, `ArrayType`,
  `FunctionType`, `IrType`, `VoidType`) and use-def chains (`Val`, `User`,
  `Use`, `Instr`). It also has constants (`Const`, with `ConstPool` to intern
  them) and `Global`.
- `bbyyy.instructions`: the instruction set: `BinInstr`, `UnaryInstr`,
  `CmpInstr`, `CastInstr` (with `get_cast_method`), `CallInstr`, `RetInstr`,
  `UnreachableInstr`, `LabelInstr`, `BrInstr`, `BrCondInstr`, `AllocInstr`,
  `LoadInstr`, `StoreInstr`, `PhiInstr`, `ItemInstr` and `MiniGepInstr`.
  Each one prints as LLVM IR text through `instr_print()`. Subclasses of
  `CalculatableInstr` fold constant operands with `calculate()`. Both kinds
  of right shift fold with the same rule as `shl`.
- `bbyyy.ir_program`: `Block`, `BlockedProgram`, `Func`, `FuncDefined`,
  `FunctionContext` and `Module`, and `RegGenerator`, which names registers
  `%n` and labels `Ln`. Blocks can be rewired with `replace_out`,
  `replace_in`, `squeeze_out` and `connect_in_and_out`.
- `bbyyy.const_propagate`: a lattice of constants (`ConstantMap`,
  `BlockValue`) that also records the known elements of one-dimensional
  local arrays. It has a forward `TransferFunction`: `apply` evaluates a
  block, and `rewrite` replaces constant-valued instructions by constants.
- `bbyyy.dse`: dead-store elimination. Its backward `TransferFunction.apply`
  tracks which stack slots may still be read, and `rewrite` erases stores
  that are never read.

## Example

```python
from bbyyy.imm import ImmValue, ImmType
from bbyyy.ir_values import Const
from bbyyy.instructions import BinInstr, BinInstrType

a = ImmValue(7, ImmType.I32)
b = ImmValue(2, ImmType.I32)
print((a / b).text())                     # 3
print((a % b).text())                     # 1
print(ImmValue(1.5, ImmType.F64).text())  # 0x3ff8000000000000

x = Const(ImmValue(3, ImmType.I32))
y = Const(ImmValue(4, ImmType.I32))
add = BinInstr(BinInstrType.ADD, x, y)
add.name = "%0"
print(add.instr_print())                              # %0 = add i32 3, 4
print(add.calculate([x.imm_value, y.imm_value]).text())  # 7
```

```python
from bbyyy.backend_frame import StackFrame

frame = StackFrame()
frame.push(4)
frame.push(8)
frame.spill_args(2)
print(frame.size())  # 48
```

## What it does not do

The package is a library only. It has no command-line compiler. It has no
parser that turns SysY source into IR, and it emits no RISC-V assembly.
The backend modules hold only enumerations, frame layout and allocation
bookkeeping; they contain no instruction selector or register allocator.
The two optimisations provide transfer functions but no solver. The caller
iterates `apply`/`cup` over the blocks until a fixed point and then calls
`rewrite`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```