"""
Test Suite

Structure:
    tests/
    ├── conftest.py                 # Shared fixtures (temp cache, in-memory replica)
    ├── test_local_cache.py         # Local cache store
    ├── test_reconcile.py           # Reconciliation + default administrator
    ├── test_coordinator.py         # Sync coordinator
    ├── test_mongo_store.py         # MongoDB replica (fake database)
    ├── test_*_service.py           # Service layer
    └── test_api.py                 # HTTP and WebSocket endpoints

To run tests:
    pytest
"""
