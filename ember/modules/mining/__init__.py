from ember.modules.mining.service import MiningService

__all__ = ["MiningService"]
