from ember.core.database.service import DatabaseService

__all__ = ["DatabaseService"]
