"""
Ember Test Suite
================

Test Organization
-----------------
- tests/unit/          : Fast unit tests (no database, deterministic randomness)
- tests/integration/   : Tests against a real in-memory aiosqlite database

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test engine rules on the aggregate
- Integration tests: Persistence, optimistic versioning and per-player locking
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
