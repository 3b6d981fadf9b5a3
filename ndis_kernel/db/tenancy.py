"""
Module: ndis_kernel.db.tenancy
Responsibility: Composite-key tenant isolation.  Helpers that declare
    tenant-unique constraints and composite foreign keys, a schema audit
    over Base.metadata, and translation of storage-layer integrity errors
    into typed ledger exceptions.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/, selectors/, or domain/.

Invariants enforced:
    - Every tenant-scoped table exposes UNIQUE (id, tenant_id) so that
      children can reference the pair.
    - Every foreign key from a tenant-scoped table to another tenant-scoped
      table is composite: (foreign_id, tenant_id) -> parent(id, tenant_id).
      A write that pairs a child of tenant A with a parent of tenant B is
      rejected by the database, not by application code.

Failure modes:
    - TenantIsolationSchemaError from assert_tenant_isolation() when the
      metadata contains a single-column tenant-scoped reference.
    - TenantMismatchError / DuplicateTransactionError from
      translate_integrity_error().
"""

from sqlalchemy import ForeignKeyConstraint, MetaData, UniqueConstraint
from sqlalchemy.exc import IntegrityError

from ndis_kernel.exceptions import (
    DuplicateTransactionError,
    LedgerError,
    TenantIsolationSchemaError,
    TenantMismatchError,
    TransactionAlreadyReversedError,
)
from ndis_kernel.logging_config import get_logger

logger = get_logger("db.tenancy")

TENANT_COLUMN = "tenant_id"

# Tables that carry tenant_id but are not themselves tenant-scoped parents.
# The tenants table is the root of the hierarchy.
ROOT_TABLE = "tenants"


def tenant_unique(table_name: str) -> UniqueConstraint:
    """UNIQUE (id, tenant_id): the target of composite references."""
    return UniqueConstraint("id", TENANT_COLUMN, name=f"uq_{table_name}_id_tenant")


def tenant_fk(
    column: str,
    parent_table: str,
    *,
    name: str | None = None,
    ondelete: str | None = None,
) -> ForeignKeyConstraint:
    """(column, tenant_id) REFERENCES parent_table (id, tenant_id)."""
    return ForeignKeyConstraint(
        [column, TENANT_COLUMN],
        [f"{parent_table}.id", f"{parent_table}.{TENANT_COLUMN}"],
        name=name or f"fk_{column}_{parent_table}_tenant",
        ondelete=ondelete,
    )


def verify_tenant_isolation(metadata: MetaData) -> list[str]:
    """
    Audit the schema for tenant-isolation gaps.

    Returns a list of human-readable violations (empty when the schema is
    sound).  A violation is any foreign key from a table carrying tenant_id
    to another table carrying tenant_id that does not include tenant_id on
    both sides, or any tenant-scoped table without UNIQUE (id, tenant_id).
    """
    violations: list[str] = []
    scoped = {
        name
        for name, table in metadata.tables.items()
        if TENANT_COLUMN in table.c and name != ROOT_TABLE
    }

    for name in sorted(scoped):
        table = metadata.tables[name]

        has_pair_unique = any(
            isinstance(c, UniqueConstraint)
            and {col.name for col in c.columns} == {"id", TENANT_COLUMN}
            for c in table.constraints
        )
        if not has_pair_unique:
            violations.append(f"{name}: missing UNIQUE (id, {TENANT_COLUMN})")

        for fk in table.foreign_key_constraints:
            parent = fk.referred_table.name
            if parent not in scoped:
                continue
            local_cols = [c.name for c in fk.columns]
            remote_cols = [e.column.name for e in fk.elements]
            if TENANT_COLUMN not in local_cols or TENANT_COLUMN not in remote_cols:
                violations.append(
                    f"{name}({', '.join(local_cols)}) -> {parent}"
                    f"({', '.join(remote_cols)}) omits {TENANT_COLUMN}"
                )

    return violations


def assert_tenant_isolation(metadata: MetaData) -> None:
    """Raise TenantIsolationSchemaError if verify_tenant_isolation finds gaps."""
    violations = verify_tenant_isolation(metadata)
    if violations:
        logger.error(
            "tenant_isolation_schema_violation",
            extra={"violations": violations},
        )
        raise TenantIsolationSchemaError(violations)


def translate_integrity_error(
    exc: IntegrityError,
    *,
    entity_type: str,
    tenant_id: str,
    shift_id: str | None = None,
    reversal_of_id: str | None = None,
) -> LedgerError | None:
    """
    Map a database IntegrityError onto the ledger exception hierarchy.

    Unique violations on shift_id become DuplicateTransactionError, unique
    violations on reversal_of_id become TransactionAlreadyReversedError, and
    any foreign-key violation on a tenant-scoped write is a
    TenantMismatchError.  Returns None when the error is none of these; the
    caller re-raises the original.
    """
    message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()

    if "unique" in message or "duplicate key" in message:
        if shift_id is not None and "shift_id" in message:
            return DuplicateTransactionError(shift_id)
        if reversal_of_id is not None and "reversal_of_id" in message:
            return TransactionAlreadyReversedError(reversal_of_id)

    if "foreign key" in message:
        logger.error(
            "tenant_mismatch_rejected",
            extra={"entity_type": entity_type, "tenant_id": tenant_id},
        )
        return TenantMismatchError(entity_type, tenant_id, str(exc.orig))

    logger.error(
        "integrity_error_unclassified",
        extra={"entity_type": entity_type, "tenant_id": tenant_id},
    )
    return None
