"""Onboarding interview: context building, caching, reply parsing and orchestration."""
