"""
Ember progression core.

Per-player progression economy: currency, leveling, jobs, crafting, mining,
lootboxes and missions, persisted as one versioned profile per player.
"""

__version__ = "0.1.0"
