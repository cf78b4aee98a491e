from ember.modules.missions.service import MissionService

__all__ = ["MissionService"]
