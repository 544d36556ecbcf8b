"""Reject bookings that exceed a lane's capacity

Revision ID: 0002_lane_capacity_guard
Revises: 0001_initial_schema
Create Date: 2026-10-02 09:00:00.000000

Installs a BEFORE INSERT OR UPDATE trigger on ``bookings``. The trigger takes
the same per-lane transaction advisory lock as the application's reservation
path, then counts non-cancelled bookings of the lane whose occupied interval
intersects the new one padded by the prep buffer. If the lane is already at
capacity it raises SQLSTATE 23P01 (``lane_capacity_reached``), which surfaces
as an IntegrityError in SQLAlchemy.

The buffer is read from the transaction-local setting
``spa.prep_buffer_minutes`` (set by the application), defaulting to 15.
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_lane_capacity_guard"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION bookings_lane_capacity_guard() RETURNS trigger AS $fn$
        DECLARE
            lane_capacity integer;
            taken integer;
            buffer interval;
        BEGIN
            IF NEW.status = 'cancelled' THEN
                RETURN NEW;
            END IF;

            buffer := make_interval(
                mins => COALESCE(NULLIF(current_setting('spa.prep_buffer_minutes', true), '')::integer, 15)
            );

            PERFORM pg_advisory_xact_lock(hashtext('lane:' || NEW.lane_id));

            SELECT capacity INTO lane_capacity FROM lanes WHERE id = NEW.lane_id FOR UPDATE;

            SELECT count(*) INTO taken
            FROM bookings b
            WHERE b.lane_id = NEW.lane_id
              AND b.id <> NEW.id
              AND b.status <> 'cancelled'
              AND b.booking_datetime < NEW.booking_datetime + make_interval(mins => NEW.duration_minutes) + buffer
              AND b.booking_datetime + make_interval(mins => b.duration_minutes) > NEW.booking_datetime - buffer;

            IF taken >= COALESCE(lane_capacity, 1) THEN
                RAISE EXCEPTION 'lane_capacity_reached' USING ERRCODE = '23P01';
            END IF;

            RETURN NEW;
        END
        $fn$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER bookings_lane_capacity_guard
        BEFORE INSERT OR UPDATE OF lane_id, booking_datetime, duration_minutes, status
        ON bookings
        FOR EACH ROW EXECUTE FUNCTION bookings_lane_capacity_guard();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS bookings_lane_capacity_guard ON bookings")
    op.execute("DROP FUNCTION IF EXISTS bookings_lane_capacity_guard()")
