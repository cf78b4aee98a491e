"""
Configuration.

- config.Config: environment settings (.env aware)
- config_manager.ConfigManager: YAML game tables with dot-notation access
"""
