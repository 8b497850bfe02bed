"""no overlapping bookings per room and day (PostgreSQL)

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-19

"""
from alembic import op

# revision identifiers, used by Alembic.
revision = '0003'
down_revision = '0002'
branch_labels = None
depends_on = None

CONSTRAINT = 'ex_room_schedule_no_overlap'

def upgrade():
    bind = op.get_bind()
    if bind.dialect.name != 'postgresql':
        # SQLite serializes writers; the service re-checks inside the write transaction
        return

    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE timerange AS RANGE (subtype = time);
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)
    # '[)' keeps back-to-back bookings legal
    op.execute(f"""
        ALTER TABLE room_schedule
        ADD CONSTRAINT {CONSTRAINT}
        EXCLUDE USING gist (
            room_id WITH =,
            day_of_week WITH =,
            timerange(start_time, end_time, '[)') WITH &&
        )
    """)

def downgrade():
    bind = op.get_bind()
    if bind.dialect.name != 'postgresql':
        return
    op.execute(f'ALTER TABLE room_schedule DROP CONSTRAINT IF EXISTS {CONSTRAINT}')
    op.execute('DROP TYPE IF EXISTS timerange')
