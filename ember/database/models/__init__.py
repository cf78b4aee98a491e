"""
Database models.

Importing this package registers every table on ``SQLModel.metadata``.
"""

from ember.database.models.profile import PlayerProfileRecord

__all__ = ["PlayerProfileRecord"]
