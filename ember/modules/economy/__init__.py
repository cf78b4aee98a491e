from ember.modules.economy.service import EconomyService

__all__ = ["EconomyService"]
