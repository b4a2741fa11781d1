"""Location-based environment context for profile synthesis."""

from .environment import EnvironmentEnricher

__all__ = ["EnvironmentEnricher"]
