"""Store client package."""

from .Db import Db

__all__ = ["Db"]
