"""
Services for odds synchronization.

This module organizes services into:
- core: Provider clients and shared helpers (odds math, circuit breakers)
- sync: Name resolution, matching, reconciliation and orchestration
"""
