"""Data stores for identity, ranking and the prize pool.

Stores handle:
- PostgreSQL: identity records (players), session management
- Redis: rank sorted set, prize pool counter, settlement leases

No ranking/settlement logic in stores - that belongs in services. Store
adapters translate transport failures into `StoreUnavailableError`.
"""
