"""MediaBridge Shared Module.

Error handling, logging, constants and record conversion used across MediaBridge.
"""

__all__ = ["constants", "conversion", "errors", "logging"]
