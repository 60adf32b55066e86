"""Configuration for the portfolio assistant."""

from portfolio_agent.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
