"""Core primitives: errors, logging, settings, versions, DSNs and records."""
