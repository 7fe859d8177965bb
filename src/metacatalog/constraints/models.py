"""SQLModel definitions for per-variant constraint payloads.

Each row hangs off the generic ``constraints`` row sharing its id. Variants
with column lists store one part row per column, with ``position`` keeping
the original order.
"""

from sqlalchemy import BigInteger, Column, ForeignKey
from sqlmodel import Field, SQLModel


def _target_fk() -> Column:  # type: ignore[type-arg]
    return Column(BigInteger, ForeignKey("targets.id"), nullable=False)


# ============================================================================
# FUNCTIONAL DEPENDENCIES
# ============================================================================


class FunctionalDependencyRecord(SQLModel, table=True):
    __tablename__ = "functional_dependencies"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    rhs_column_id: int = Field(sa_column=_target_fk())


class FunctionalDependencyLhsRecord(SQLModel, table=True):
    __tablename__ = "functional_dependency_lhs"

    constraint_id: int = Field(foreign_key="functional_dependencies.constraint_id", primary_key=True)
    position: int = Field(primary_key=True)
    column_id: int = Field(sa_column=_target_fk())


# ============================================================================
# INCLUSION DEPENDENCIES
# ============================================================================


class InclusionDependencyRecord(SQLModel, table=True):
    __tablename__ = "inclusion_dependencies"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    arity: int


class InclusionDependencyPartRecord(SQLModel, table=True):
    """One dependent/referenced column pair."""

    __tablename__ = "inclusion_dependency_parts"

    constraint_id: int = Field(foreign_key="inclusion_dependencies.constraint_id", primary_key=True)
    position: int = Field(primary_key=True)
    dependent_column_id: int = Field(sa_column=_target_fk())
    referenced_column_id: int = Field(sa_column=_target_fk())


# ============================================================================
# UNIQUE COLUMN COMBINATIONS
# ============================================================================


class UniqueColumnCombinationRecord(SQLModel, table=True):
    __tablename__ = "unique_column_combinations"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    arity: int


class UniqueColumnCombinationColumnRecord(SQLModel, table=True):
    __tablename__ = "unique_column_combination_columns"

    constraint_id: int = Field(
        foreign_key="unique_column_combinations.constraint_id", primary_key=True
    )
    position: int = Field(primary_key=True)
    column_id: int = Field(sa_column=_target_fk())


# ============================================================================
# SINGLE-ROW VARIANTS
# ============================================================================


class DistinctValueCountRecord(SQLModel, table=True):
    __tablename__ = "distinct_value_counts"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    column_id: int = Field(sa_column=_target_fk())
    count: int


class DistinctValueOverlapRecord(SQLModel, table=True):
    __tablename__ = "distinct_value_overlaps"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    first_column_id: int = Field(sa_column=_target_fk())
    second_column_id: int = Field(sa_column=_target_fk())
    overlap: int


class TypeConstraintRecord(SQLModel, table=True):
    __tablename__ = "type_constraints"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    column_id: int = Field(sa_column=_target_fk())
    column_type: str  # ColumnType value


class TupleCountRecord(SQLModel, table=True):
    __tablename__ = "tuple_counts"

    constraint_id: int = Field(foreign_key="constraints.id", primary_key=True)
    table_id: int = Field(sa_column=_target_fk())
    num_tuples: int


CONSTRAINT_TABLES = (
    "functional_dependencies",
    "functional_dependency_lhs",
    "inclusion_dependencies",
    "inclusion_dependency_parts",
    "unique_column_combinations",
    "unique_column_combination_columns",
    "distinct_value_counts",
    "distinct_value_overlaps",
    "type_constraints",
    "tuple_counts",
)
"""Relations holding the payloads of the built-in variants."""
