"""
Core infrastructure layer.

- Configuration (Config, ConfigManager)
- Logging (structured logging, LogContext)
- Database (DatabaseService)
- Locking (PlayerLockManager)
- Infrastructure exceptions
- Injectable Clock and RandomSource

No game rules live here.
"""
