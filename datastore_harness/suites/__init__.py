from .datastore import DataStoreSuite

__all__ = ["DataStoreSuite"]
