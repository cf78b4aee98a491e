"""
Profile Module

- ProfileRepository: load/save with optimistic versioning
- ProgressionService: locked, retried load -> action -> events -> save
"""

from ember.modules.profile.repository import ProfileRepository
from ember.modules.profile.service import ProgressionService

__all__ = ["ProfileRepository", "ProgressionService"]
