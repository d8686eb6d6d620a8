"""Generic mapping flags and the interface shared by all page table entries."""

from __future__ import annotations

import abc
import enum

U64_MASK = (1 << 64) - 1


class MappingFlags(enum.IntFlag):
    """Permissions and attributes of a mapped memory region."""

    READ = 1 << 0
    WRITE = 1 << 1
    EXECUTE = 1 << 2
    USER = 1 << 3
    DEVICE = 1 << 4
    UNCACHED = 1 << 5


class GenericPTE(abc.ABC):
    """A 64-bit page table entry; each architecture supplies its own layout."""

    __slots__ = ("raw",)

    def __init__(self, raw=0):
        self.raw = int(raw) & U64_MASK

    @classmethod
    @abc.abstractmethod
    def new_page(cls, paddr, flags, is_huge):
        """Create an entry pointing to a terminal page or block."""

    @classmethod
    @abc.abstractmethod
    def new_table(cls, paddr):
        """Create an entry pointing to a next-level table."""

    @classmethod
    def empty(cls):
        """Create an entry with all bits cleared."""
        return cls(0)

    @abc.abstractmethod
    def paddr(self):
        """Physical address mapped by this entry."""

    @abc.abstractmethod
    def set_paddr(self, paddr):
        """Replace the physical address, keeping the attribute bits."""

    @abc.abstractmethod
    def flags(self):
        """Generic mapping flags of this entry."""

    @abc.abstractmethod
    def set_flags(self, flags, is_huge):
        """Replace the attribute bits, keeping the physical address."""

    def is_unused(self):
        """Whether every bit of the entry is zero."""
        return self.raw == 0

    @abc.abstractmethod
    def is_present(self):
        """Whether the entry is marked present."""

    @abc.abstractmethod
    def is_huge(self):
        """Whether a non-last-level entry maps a huge frame."""

    def clear(self):
        """Set the entry to zero."""
        self.raw = 0

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.raw == other.raw

    __hash__ = None

    def __repr__(self):
        return (
            f"{type(self).__name__}(raw={self.raw:#x}, "
            f"paddr={self.paddr():#x}, flags={self.flags()!r})"
        )