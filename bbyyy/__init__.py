"""IR, RISC-V backend helpers, constant propagation and dead-store elimination for a small SysY compiler."""

__version__ = "0.1.0"