"""
Game modules.

Each engine is a synchronous service taking a PlayerProfile and returning an
Outcome. The profile package wires them behind ProgressionService.
"""
