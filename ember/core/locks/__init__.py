from ember.core.locks.player_lock import PlayerLockManager

__all__ = ["PlayerLockManager"]
