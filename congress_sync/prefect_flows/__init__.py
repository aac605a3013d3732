"""
Prefect flows for the Congress sync engine.

This package contains flow definitions for:
- Scheduled sync strategies
- Draining the sync job ledger
- Sync statistics and alerting
- Change notification fan-out

Responsibility: Define orchestration workflows using Prefect
"""
