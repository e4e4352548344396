from backend.core.config import AppSettings, ConfigurationError, settings

__all__ = ["AppSettings", "ConfigurationError", "settings"]
