"""001 – Initial schema: employees, managers, vacation requests.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "request_status",
        [
            "pending",
            "needs_review",
            "approved",
            "approved_exception",
            "rejected",
            "cancelled",
        ],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                VARCHAR(150) NOT NULL,
            email               VARCHAR(255) NOT NULL UNIQUE,
            team                VARCHAR(100),
            allowance_total     INTEGER NOT NULL DEFAULT 0,
            used_days           INTEGER NOT NULL DEFAULT 0,
            remaining_override  INTEGER,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_name ON employees (name)")
    op.execute("CREATE INDEX ix_employees_team ON employees (team)")

    # ── 2. managers (row order = roster order) ────────────────────────────
    op.execute("""
        CREATE TABLE managers (
            id          INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
            email       VARCHAR(255) NOT NULL UNIQUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. vacation_requests ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE vacation_requests (
            id                  INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
            submitted_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            requester_email     VARCHAR(255) NOT NULL,
            requester_name      VARCHAR(150) NOT NULL,
            employee_id         UUID REFERENCES employees(id),
            start_date          DATE,
            end_date            DATE,
            status              request_status DEFAULT 'pending',
            business_days       INTEGER,
            note                TEXT,
            calendar_event_ref  VARCHAR(255),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_vacation_requests_requester_email "
        "ON vacation_requests (requester_email)"
    )
    op.execute("CREATE INDEX ix_vacation_requests_status ON vacation_requests (status)")
    op.execute("CREATE INDEX ix_vacation_requests_start_date ON vacation_requests (start_date)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    for t in ["vacation_requests", "managers", "employees"]:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
