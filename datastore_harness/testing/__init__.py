from .memory import MemoryDataStore, MemoryRemote

__all__ = ["MemoryDataStore", "MemoryRemote"]
