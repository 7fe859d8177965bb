"""metacatalog - relational metadata catalog with pluggable constraints."""

from metacatalog.store import MetadataStore

__version__ = "0.1.0"

__all__ = ["MetadataStore", "__version__"]
