"""Initial schema: ladder, user, availability, match, sms_log, hourly_weather.

Revision ID: 001_initial_schema
Revises:
"""

from alembic import op
import sqlalchemy as sa


revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "ladder",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("match_format", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ladder_number", "ladder", ["number"], unique=True)

    op.create_table(
        "user",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("partner_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("ladder_id", sa.String(), sa.ForeignKey("ladder.id"), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verification_token", sa.String(), nullable=True),
        sa.Column("email_verification_expiry", sa.DateTime(), nullable=True),
        sa.Column("otp_code", sa.String(), nullable=True),
        sa.Column("otp_expiry", sa.DateTime(), nullable=True),
        sa.Column("notification_preference", sa.String(), nullable=False, server_default="email"),
        sa.Column("receive_updates", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("receive_match_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("receive_marketing", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_partner_id", "user", ["partner_id"])
    op.create_index("ix_user_ladder_id", "user", ["ladder_id"])
    op.create_index("ix_user_email_verification_token", "user", ["email_verification_token"])

    op.create_table(
        "availability",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("week_start", sa.DateTime(), nullable=False),
        sa.Column("availability", sa.String(), nullable=False, server_default="available"),
        sa.Column("set_by_user_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "start_at", name="uq_availability_user_slot"),
    )
    op.create_index("ix_availability_user_id", "availability", ["user_id"])
    op.create_index("ix_availability_week_start", "availability", ["week_start"])

    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("team1_id", sa.String(), nullable=False),
        sa.Column("team2_id", sa.String(), nullable=False),
        sa.Column("ladder_id", sa.String(), sa.ForeignKey("ladder.id"), nullable=True),
        sa.Column("confirmed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("team1_score", sa.Integer(), nullable=True),
        sa.Column("team2_score", sa.Integer(), nullable=True),
        sa.Column("team1_detailed_score", sa.String(), nullable=True),
        sa.Column("team2_detailed_score", sa.String(), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_match_start_at", "match", ["start_at"])
    op.create_index("ix_match_team1_id", "match", ["team1_id"])
    op.create_index("ix_match_team2_id", "match", ["team2_id"])
    op.create_index("ix_match_ladder_id", "match", ["ladder_id"])

    # -----------------------------------------------------------------------
    # sms_log - record of every SMS sent
    # -----------------------------------------------------------------------
    op.create_table(
        "sms_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("match_id", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=False),
        sa.Column("message_body", sa.String(), nullable=False),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("twilio_sid", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("trigger", sa.String(), nullable=False, server_default="auto"),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sms_log_user_id", "sms_log", ["user_id"])

    op.create_table(
        "hourly_weather",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("forecast_at", sa.DateTime(), nullable=False),
        sa.Column("temperature", sa.Float(), nullable=False),
        sa.Column("feels_like_temperature", sa.Float(), nullable=True),
        sa.Column("weather_type", sa.String(), nullable=False),
        sa.Column("precipitation_probability", sa.Float(), nullable=True),
        sa.Column("wind_speed", sa.Float(), nullable=True),
        sa.Column("wind_direction", sa.Float(), nullable=True),
        sa.Column("wind_gust", sa.Float(), nullable=True),
        sa.Column("uv_index", sa.Float(), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_hourly_weather_forecast_at", "hourly_weather", ["forecast_at"], unique=True)


def downgrade():
    op.drop_table("hourly_weather")
    op.drop_table("sms_log")
    op.drop_table("match")
    op.drop_table("availability")
    op.drop_table("user")
    op.drop_table("ladder")
