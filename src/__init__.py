# src/__init__.py - v1
"""crawlintel - crawl intelligence and orchestration engine."""
