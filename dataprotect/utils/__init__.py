"""Logging helpers shared by the dataprotect clients."""
