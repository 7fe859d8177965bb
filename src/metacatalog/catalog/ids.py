"""Hierarchical target identifiers.

Every target id is a 32-bit value split into three fields, high to low::

    | schema bits | table bits | column bits |

A field set to all ones (the sentinel) means "this level is not populated":

- schema id: table and column fields are the sentinel
- table id: column field is the sentinel, table field is concrete
- column id: all fields concrete

The layout lets any component recover a target's ancestors from its id
alone, so unresolved ids can be dispatched to the right loader before
anything has been fetched.
"""

from __future__ import annotations

from enum import Enum

from metacatalog.config.constants import (
    DEFAULT_COLUMN_BITS,
    DEFAULT_TABLE_BITS,
    ID_BITS,
    ID_MASK,
    MIN_SCHEMA_BITS,
)


class TargetKind(str, Enum):
    """Hierarchy level encoded by an identifier."""

    SCHEMA = "schema"
    TABLE = "table"
    COLUMN = "column"


def _bitmask(num_bits: int) -> int:
    return (1 << num_bits) - 1


class IdCodec:
    """Encodes and decodes hierarchical target identifiers.

    Args:
        num_table_bits: Width of the table field.
        num_column_bits: Width of the column field. The schema field gets
            whatever is left of the 32 bits.
    """

    def __init__(
        self,
        num_table_bits: int = DEFAULT_TABLE_BITS,
        num_column_bits: int = DEFAULT_COLUMN_BITS,
    ) -> None:
        num_schema_bits = ID_BITS - num_table_bits - num_column_bits
        if num_table_bits < 1 or num_column_bits < 1 or num_schema_bits < MIN_SCHEMA_BITS:
            raise ValueError(
                f"Invalid id layout: table_bits={num_table_bits}, column_bits={num_column_bits}"
            )

        self.num_schema_bits = num_schema_bits
        self.num_table_bits = num_table_bits
        self.num_column_bits = num_column_bits

        self._schema_mask = _bitmask(num_schema_bits)
        self._table_mask = _bitmask(num_table_bits)
        self._column_mask = _bitmask(num_column_bits)
        self._schema_offset = num_table_bits + num_column_bits
        self._table_offset = num_column_bits

        # Sentinels are the all-ones value of each field
        self.table_sentinel = self._table_mask
        self.column_sentinel = self._column_mask

    def __repr__(self) -> str:
        return (
            f"IdCodec(schema_bits={self.num_schema_bits}, "
            f"table_bits={self.num_table_bits}, column_bits={self.num_column_bits})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IdCodec):
            return NotImplemented
        return (self.num_table_bits, self.num_column_bits) == (
            other.num_table_bits,
            other.num_column_bits,
        )

    def __hash__(self) -> int:
        return hash((self.num_table_bits, self.num_column_bits))

    # -- bounds ---------------------------------------------------------------

    @property
    def max_schema_number(self) -> int:
        return self._schema_mask

    @property
    def max_table_number(self) -> int:
        return self._table_mask - 1

    @property
    def max_column_number(self) -> int:
        return self._column_mask - 1

    # -- encoding -------------------------------------------------------------

    def encode(
        self,
        schema_local: int,
        table_local: int | None = None,
        column_local: int | None = None,
    ) -> int:
        """Pack local numbers into a global id.

        Omitted levels are set to the sentinel, giving a schema id
        (``encode(s)``) or a table id (``encode(s, t)``).

        Raises:
            ValueError: If a local number is out of range, or a column is
                given without a table.
        """
        if table_local is None and column_local is not None:
            raise ValueError("A column number requires a table number")

        _check_range("schema", schema_local, self.max_schema_number)
        if table_local is None:
            table_local = self.table_sentinel
        else:
            _check_range("table", table_local, self.max_table_number)
        if column_local is None:
            column_local = self.column_sentinel
        else:
            _check_range("column", column_local, self.max_column_number)

        return (
            (schema_local << self._schema_offset)
            | (table_local << self._table_offset)
            | column_local
        )

    # -- decoding (total over any integer) ------------------------------------

    def decode_schema_local(self, target_id: int) -> int:
        return ((target_id & ID_MASK) >> self._schema_offset) & self._schema_mask

    def decode_table_local(self, target_id: int) -> int:
        return ((target_id & ID_MASK) >> self._table_offset) & self._table_mask

    def decode_column_local(self, target_id: int) -> int:
        return target_id & self._column_mask

    def kind_of(self, target_id: int) -> TargetKind:
        """Classify an id by its deepest populated level.

        A table field at the sentinel with a concrete column field is
        still a column id: only the innermost field decides.
        """
        if self.decode_column_local(target_id) != self.column_sentinel:
            return TargetKind.COLUMN
        if self.decode_table_local(target_id) != self.table_sentinel:
            return TargetKind.TABLE
        return TargetKind.SCHEMA

    def is_schema_id(self, target_id: int) -> bool:
        return self.kind_of(target_id) is TargetKind.SCHEMA

    def is_table_id(self, target_id: int) -> bool:
        return self.kind_of(target_id) is TargetKind.TABLE

    def is_column_id(self, target_id: int) -> bool:
        return self.kind_of(target_id) is TargetKind.COLUMN

    # -- ancestry -------------------------------------------------------------

    def schema_id_of(self, target_id: int) -> int:
        """Id of the schema that owns (or is) the given target."""
        return self.encode(self.decode_schema_local(target_id))

    def table_id_of(self, target_id: int) -> int:
        """Id of the table that owns (or is) the given table or column.

        Raises:
            ValueError: For schema ids, which have no table.
        """
        if self.kind_of(target_id) is TargetKind.SCHEMA:
            raise ValueError(f"Schema id {target_id} has no table")
        return (target_id & ID_MASK) | self._column_mask

    def parent_id_of(self, target_id: int) -> int | None:
        """Id of the direct parent, or None for schema ids."""
        kind = self.kind_of(target_id)
        if kind is TargetKind.SCHEMA:
            return None
        if kind is TargetKind.TABLE:
            return self.schema_id_of(target_id)
        return self.table_id_of(target_id)

    def child_id_range(self, parent_id: int) -> tuple[int, int]:
        """Inclusive id range containing every descendant of ``parent_id``."""
        if self.kind_of(parent_id) is TargetKind.SCHEMA:
            low = self.decode_schema_local(parent_id) << self._schema_offset
            return low, low | _bitmask(self._schema_offset)
        if self.kind_of(parent_id) is TargetKind.TABLE:
            low = (parent_id & ID_MASK) & ~self._column_mask
            return low, low | self._column_mask
        raise ValueError(f"Column id {parent_id} has no children")


def _check_range(level: str, value: int, maximum: int) -> None:
    if not 0 <= value <= maximum:
        raise ValueError(f"Local {level} number {value} out of range 0..{maximum}")
