"""Initial homestay schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

Money as INTEGER cents. Reservations of one unit may not overlap while
CONFIRMED or CHECKED_IN (btree_gist exclusion constraint).
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'role': ('ADMIN', 'FINANCE', 'CLEANER', 'AGENT'),
    'reservationstatus': ('DRAFT', 'CONFIRMED', 'CHECKED_IN', 'CHECKED_OUT', 'CANCELED'),
    'depositstatus': (
        'NOT_REQUIRED', 'PENDING', 'HELD', 'PAID',
        'PARTIALLY_REFUNDED', 'REFUNDED', 'FORFEITED', 'FAILED',
    ),
    # Stored by value, not by name
    'depositeventtype': ('request', 'collect', 'hold', 'refund', 'forfeit', 'fail'),
    'cleaningstatus': ('PENDING', 'ASSIGNED', 'IN_PROGRESS', 'DONE', 'FAILED'),
}


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    for name, values in ENUMS.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION WHEN duplicate_object THEN NULL;
            END $$;
        """)

    # === USERS ===
    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            password_hash VARCHAR(255) NOT NULL,
            role role NOT NULL DEFAULT 'AGENT',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            last_login_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    # === LOCATIONS / UNITS ===
    op.execute("""
        CREATE TABLE locations (
            id UUID PRIMARY KEY,
            name VARCHAR(255) NOT NULL UNIQUE,
            address VARCHAR(500),
            description TEXT,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE units (
            id UUID PRIMARY KEY,
            location_id UUID REFERENCES locations(id) ON DELETE SET NULL,
            name VARCHAR(255) NOT NULL,
            code VARCHAR(50) NOT NULL UNIQUE,
            address VARCHAR(500),
            max_guests INTEGER,
            description TEXT,
            active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_units_location_id', 'units', ['location_id'])
    op.create_index('ix_units_code', 'units', ['code'])

    # === GUESTS ===
    op.execute("""
        CREATE TABLE guests (
            id UUID PRIMARY KEY,
            full_name VARCHAR(255) NOT NULL,
            email VARCHAR(255) UNIQUE,
            phone VARCHAR(50),
            address VARCHAR(500),
            notes TEXT,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_guests_full_name', 'guests', ['full_name'])
    op.create_index('ix_guests_email', 'guests', ['email'])

    # === RESERVATIONS ===
    op.execute("""
        CREATE TABLE reservations (
            id UUID PRIMARY KEY,
            unit_id UUID NOT NULL REFERENCES units(id) ON DELETE RESTRICT,
            guest_id UUID NOT NULL REFERENCES guests(id) ON DELETE RESTRICT,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            check_in TIMESTAMP NOT NULL,
            check_out TIMESTAMP NOT NULL,
            actual_check_in TIMESTAMP,
            actual_check_out TIMESTAMP,
            status reservationstatus NOT NULL DEFAULT 'DRAFT',
            head_count INTEGER NOT NULL DEFAULT 1,
            special_requests TEXT,
            nightly_rate_cents INTEGER,
            cleaning_fee_cents INTEGER NOT NULL DEFAULT 0,
            total_amount_cents INTEGER NOT NULL DEFAULT 0,
            deposit_required BOOLEAN NOT NULL DEFAULT FALSE,
            deposit_amount_cents INTEGER NOT NULL DEFAULT 0,
            deposit_status depositstatus NOT NULL DEFAULT 'NOT_REQUIRED',
            deposit_method VARCHAR(50),
            deposit_txn_id VARCHAR(255),
            deposit_paid_at TIMESTAMP,
            deposit_evidence_urls JSONB NOT NULL DEFAULT '[]'::jsonb,
            deposit_refund_cents INTEGER NOT NULL DEFAULT 0,
            deposit_refunded_at TIMESTAMP,
            deposit_refund_reason TEXT,
            deposit_forfeit_cents INTEGER NOT NULL DEFAULT 0,
            deposit_forfeit_reason TEXT,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW(),
            CONSTRAINT ck_reservation_interval CHECK (check_in < check_out),
            CONSTRAINT ck_reservation_deposit_settlement
                CHECK (deposit_refund_cents + deposit_forfeit_cents <= deposit_amount_cents),
            CONSTRAINT ex_reservations_no_overlap EXCLUDE USING gist (
                unit_id WITH =,
                tsrange(check_in, check_out, '[)') WITH &&
            ) WHERE (status IN ('CONFIRMED', 'CHECKED_IN'))
        )
    """)
    op.create_index('ix_reservations_unit_id', 'reservations', ['unit_id'])
    op.create_index('ix_reservations_guest_id', 'reservations', ['guest_id'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])
    op.create_index('ix_reservations_deposit_status', 'reservations', ['deposit_status'])
    op.create_index('ix_reservations_created_at', 'reservations', ['created_at'])
    op.create_index('ix_reservations_unit_window', 'reservations', ['unit_id', 'check_in', 'check_out'])

    # === DEPOSIT EVENTS (append-only) ===
    op.execute("""
        CREATE TABLE deposit_events (
            id UUID PRIMARY KEY,
            reservation_id UUID NOT NULL REFERENCES reservations(id) ON DELETE CASCADE,
            type depositeventtype NOT NULL,
            status depositstatus NOT NULL,
            amount_cents INTEGER NOT NULL DEFAULT 0,
            method VARCHAR(50),
            txn_id VARCHAR(255),
            reason TEXT,
            evidence_urls JSONB NOT NULL DEFAULT '[]'::jsonb,
            acted_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_deposit_events_reservation_id', 'deposit_events', ['reservation_id'])
    op.create_index('ix_deposit_events_created_at', 'deposit_events', ['created_at'])

    # === CLEANING ===
    op.execute("""
        CREATE TABLE cleaning_tasks (
            id UUID PRIMARY KEY,
            reservation_id UUID REFERENCES reservations(id) ON DELETE SET NULL,
            unit_id UUID NOT NULL REFERENCES units(id) ON DELETE CASCADE,
            assigned_to_id UUID REFERENCES users(id) ON DELETE SET NULL,
            status cleaningstatus NOT NULL DEFAULT 'PENDING',
            scheduled_date TIMESTAMP NOT NULL,
            started_at TIMESTAMP,
            completed_at TIMESTAMP,
            notes TEXT,
            failure_reason TEXT,
            approved_at TIMESTAMP,
            approved_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_cleaning_tasks_reservation_id', 'cleaning_tasks', ['reservation_id'])
    op.create_index('ix_cleaning_tasks_unit_id', 'cleaning_tasks', ['unit_id'])
    op.create_index('ix_cleaning_tasks_assigned_to_id', 'cleaning_tasks', ['assigned_to_id'])
    op.create_index('ix_cleaning_tasks_status', 'cleaning_tasks', ['status'])
    op.create_index('ix_cleaning_tasks_scheduled_date', 'cleaning_tasks', ['scheduled_date'])
    op.create_index('ix_cleaning_tasks_completed_at', 'cleaning_tasks', ['completed_at'])

    op.execute("""
        CREATE TABLE cleaning_photos (
            id UUID PRIMARY KEY,
            cleaning_task_id UUID NOT NULL REFERENCES cleaning_tasks(id) ON DELETE CASCADE,
            url VARCHAR(1000) NOT NULL,
            uploaded_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index('ix_cleaning_photos_cleaning_task_id', 'cleaning_photos', ['cleaning_task_id'])


def downgrade() -> None:
    op.drop_table('cleaning_photos')
    op.drop_table('cleaning_tasks')
    op.drop_table('deposit_events')
    op.drop_table('reservations')
    op.drop_table('guests')
    op.drop_table('units')
    op.drop_table('locations')
    op.drop_table('users')
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
