"""
Storefront service package for the Stylino shop.

Serves the catalog reads behind the storefront, the admin back-office API
and the affiliate dashboard API. It provides:

- app.main: FastAPI routes and service wiring.
- app.caching: Bounded TTL caches for catalog reads.
- app.auth: Session resolution and the role-based access guard.
- app.domain: Order, commission and settings rules.
- app.persistence: PostgreSQL access via asyncpg.

Guidelines:
- Privileged routes call the access guard before anything else.
- Catalog reads check the in-process cache before the database.
- Cached data may be stale up to its TTL; it is never a source of truth.
"""
