from ember.modules.lootbox.service import LootboxService

__all__ = ["LootboxService"]
