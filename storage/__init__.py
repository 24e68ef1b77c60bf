"""
Storage Package.

Persistence for catalog, inventory, market data, sales
history and the sync queue.

Modules:
- models/: ORM models
- repositories/: Data access layer
"""
