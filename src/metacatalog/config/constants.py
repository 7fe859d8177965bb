"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are storage-format constraints and implementation details.

For configurable values, see models.py (CacheConfig, IdentifierConfig, etc.).
"""

# =============================================================================
# Identifier Layout
# =============================================================================

ID_BITS = 32
"""Total width of a target identifier."""

ID_MASK = (1 << ID_BITS) - 1
"""Mask applied before decoding so any integer decodes as a 32-bit value."""

DEFAULT_TABLE_BITS = 12
"""Default width of the table field."""

DEFAULT_COLUMN_BITS = 12
"""Default width of the column field."""

MIN_SCHEMA_BITS = 1
"""The schema field must keep at least this many bits."""

# =============================================================================
# Caching
# =============================================================================

DEFAULT_CACHE_SIZE = 1000
"""Default capacity of each bounded point/aggregate cache."""

# =============================================================================
# Persisted Store Configuration Keys
# =============================================================================
# Written into the config relation on store creation and read back on open,
# so a store is always decoded with the layout it was written with.

CONFIG_KEY_TABLE_BITS = "num_table_bits"
CONFIG_KEY_COLUMN_BITS = "num_column_bits"
CONFIG_KEY_FORMAT_VERSION = "format_version"

STORE_FORMAT_VERSION = "1"
