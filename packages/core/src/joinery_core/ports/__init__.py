from .database import Entity, IDatabase

__all__ = ["Entity", "IDatabase"]
