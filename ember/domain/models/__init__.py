"""
Domain models.

- base: Entity / AggregateRoot / DomainEvent and validation helpers
- ledger: currency wallet, item stacks, material lots and tools
- jobs: job memberships and salary timestamps
- missions: daily and weekly mission boards
- profile: the PlayerProfile aggregate root
"""
