"""Simulated multi-level page tables and page table entries for x86_64, AArch64, RISC-V and LoongArch64."""

__version__ = "0.5.3"

__all__ = [
    "arch",
    "entry_aarch64",
    "entry_loongarch64",
    "entry_riscv",
    "entry_x86_64",
    "flags",
    "paging",
    "table64",
]