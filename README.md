# pagetable_multiarch

Architecture-neutral page table entries and a generic 64-bit multi-level page
table that lives in simulated physical memory. Use it to reason about, test or
emulate the paging structures of x86_64, AArch64 (VMSAv8-64), RISC-V Sv39/Sv48
and LoongArch64.

## Install

```
pip install pagetable-multiarch
```

No runtime dependencies. Python 3.10 or later.

## Pieces

- `pagetable_multiarch.flags`: `MappingFlags` (an `IntFlag` with READ, WRITE,
  EXECUTE, USER, DEVICE, UNCACHED) and `GenericPTE`, the abstract base of every
  entry type. An entry wraps one 64-bit `raw` value and offers `new_page`,
  `new_table`, `empty`, `paddr`, `set_paddr`, `flags`, `set_flags`,
  `is_unused`, `is_present`, `is_huge` and `clear`.
- `pagetable_multiarch.entry_x86_64`: `PTF` flag bits and `X64PTE`.
- `pagetable_multiarch.entry_riscv`: `PTEFlags` and `Rv64PTE` (Sv39/Sv48).
- `pagetable_multiarch.entry_aarch64`: `DescriptorAttr`, `MemAttr`,
  `MAIR_VALUE` (`0x44ff04`), `A64PTE` (EL1 permission model) and `A64El2PTE`
  (EL2 permission model).
- `pagetable_multiarch.entry_loongarch64`: `PTEFlags` and `LA64PTE`.

  Each native flag set has `from_mapping(...)` and `to_mapping()` for converting
  to and from `MappingFlags`.
- `pagetable_multiarch.paging`: `PageSize` (`SIZE_4K`, `SIZE_2M`, `SIZE_1G`),
  the `PagingError` hierarchy (`NoMemoryError`, `NotAlignedError`,
  `NotMappedError`, `AlreadyMappedError`, `MappedToHugePageError`),
  `PagingMetaData`, the abstract `PagingHandler`, an in-memory
  `FrameAllocator`, and the `TlbFlush` / `TlbFlushAll` results.
- `pagetable_multiarch.table64`: `PageTable64`, the 3- or 4-level table, with
  `map`, `remap`, `protect`, `unmap`, `query`, `map_region`, `unmap_region`,
  `protect_region`, `walk`, `copy_from` and `close`. It is also a context
  manager.
- `pagetable_multiarch.arch`: `X64PagingMetaData`, `A64PagingMetaData`,
  `LA64MetaData` (with `PWCL_VALUE` and `PWCH_VALUE`), `Sv39MetaData`,
  `Sv48MetaData`, and the constructors `x64_page_table`, `a64_page_table`,
  `la64_page_table`, `sv39_page_table` and `sv48_page_table`.

## Example

```python
from pagetable_multiarch.arch import x64_page_table
from pagetable_multiarch.flags import MappingFlags
from pagetable_multiarch.paging import FrameAllocator, PageSize, NotMappedError

flushed = []
handler = FrameAllocator(base=0x8000_0000, frame_count=64)

with x64_page_table(handler, flushed.append) as table:
    rw = MappingFlags.READ | MappingFlags.WRITE
    table.map(0x1000, 0x20_0000, PageSize.SIZE_4K, rw).flush()

    paddr, flags, size = table.query(0x1234)
    assert paddr == 0x20_0234 and size is PageSize.SIZE_4K

    table.map_region(0x4000_0000, lambda va: va, 0x4000_0000, rw, True, False).ignore()
    assert table.query(0x4000_0000)[2] is PageSize.SIZE_1G

    table.unmap(0x1000)[2].flush()
    try:
        table.query(0x1000)
    except NotMappedError:
        pass
```

The `flush` callback receives a virtual address for a single-page flush, or
`None` when the whole TLB is to be flushed. Leaving the `with` block (or
calling `close()`) returns every table frame to the handler; `allocated()` on a
`FrameAllocator` shows the frames still in use.

To use a different frame store, subclass `PagingHandler` and implement
`alloc_frame`, `dealloc_frame` and `table` (which returns the mutable list of
512 raw entries held in a frame); then build a `PageTable64` directly from a
metadata instance, an entry class and the handler.

Region operations log through the standard `logging` module under the
`pagetable_multiarch.table64` logger.

## What it does not do

The package works only on simulated memory held by a handler. It does not
touch real page tables or real TLBs: flushing calls the callback you supply and
nothing else. There is no command-line tool.

## Tests

```
pip install "pagetable-multiarch[test]"
pytest
```