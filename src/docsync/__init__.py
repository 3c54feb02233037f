"""docsync: versioned document sync between a local store and GitHub or a notes vault."""

__version__ = "0.1.0"
