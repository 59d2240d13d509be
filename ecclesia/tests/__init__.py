"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Entity mapper (round-trip, legacy records)
    - Memory, local, document and relational stores
    - Cache manager (TTL reuse, optimistic writes, invalidation)
    - Seeding, session gate, record service and compliance helpers
    - Configuration and attachments
"""
