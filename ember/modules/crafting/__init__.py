from ember.modules.crafting.service import CraftingService

__all__ = ["CraftingService"]
