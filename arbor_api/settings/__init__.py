"""Client settings loading."""

from .app import ArborSettings, TrafficProtocol, get_settings


__all__ = ["ArborSettings", "TrafficProtocol", "get_settings"]
