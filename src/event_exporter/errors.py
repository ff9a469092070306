from __future__ import annotations


class ExporterError(Exception):
    """Base exception for exporter setup issues."""
    pass


class ConfigurationError(ExporterError):
    """Required configuration is missing or inconsistent."""
    pass


class TableSetupError(ExporterError):
    """The destination table could not be created or confirmed."""
    pass
