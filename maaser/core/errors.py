from __future__ import annotations

class MaaserError(Exception):
    """Base class for importer errors."""

class ConfigurationError(MaaserError):
    """OWNER_ID or DATABASE_URL is missing or blank."""

class WorkbookError(MaaserError):
    """The workbook could not be opened or read."""
