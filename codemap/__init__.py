"""codemap — decide which files in a repository are worth mapping.

Discovers in-scope files (honouring .gitignore with explicit overrides),
classifies them by language and extraction capability, and tracks the
lifecycle metadata of the derived cache.
"""

__version__ = "0.1.0"
