"""
TeamPlan - Allocation Capacity & Conflict Analysis

This package contains the TeamPlan analysis services:
- models: Planning domain models (teams, cycles, epics, allocations)
- analyzers: Capacity, consistency, conflict, trend and dependency analysis
- api: FastAPI REST endpoints
- platform: Cross-cutting concerns (configuration, logging)
"""

__version__ = "0.1.0"
