"""initial schema"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


SurveyStatus = sa.Enum("DRAFT", "ACTIVE", "ARCHIVED", name="surveystatus", native_enum=False)
SurveySessionStatus = sa.Enum(
    "ACTIVE",
    "COMPLETED",
    "INACTIVE",
    "ABANDONED",
    name="surveysessionstatus",
    native_enum=False,
)
SourceType = sa.Enum("WEBSITE", "TEXT", name="sourcetype", native_enum=False)
SourceStatus = sa.Enum(
    "PENDING",
    "SCANNING",
    "COMPLETED",
    "ERROR",
    name="sourcestatus",
    native_enum=False,
)
SubscriptionStatus = sa.Enum(
    "ACTIVE",
    "CANCELED",
    "PAST_DUE",
    name="subscriptionstatus",
    native_enum=False,
)
DesignType = sa.Enum("MINIMAL", "COMPACT", "FULL", name="designtype", native_enum=False)
WelcomeType = sa.Enum("TEXT", "BUBBLE", name="welcometype", native_enum=False)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=255)),
        sa.Column("last_name", sa.String(length=255)),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="eur"),
        sa.Column("billing_interval", sa.String(length=16), nullable=False, server_default="month"),
        sa.Column("max_bots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_messages_per_month", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("subscription_plans.id"), nullable=False),
        sa.Column("status", SubscriptionStatus, nullable=False, server_default="ACTIVE"),
        sa.Column("current_period_start", sa.DateTime(timezone=True)),
        sa.Column("current_period_end", sa.DateTime(timezone=True)),
        sa.Column("messages_used_this_month", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "chatbot_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guid", sa.String(length=36), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("avatar_url", sa.String(length=1024)),
        sa.Column("system_prompt", sa.Text(), nullable=False),
        sa.Column("model", sa.String(length=64)),
        sa.Column("temperature", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("max_tokens", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("welcome_message", sa.Text()),
        sa.Column("fallback_message", sa.Text()),
        sa.Column("home_screen_config", sa.JSON()),
        sa.Column("initial_messages", sa.JSON(), nullable=False),
        sa.Column("background_image_url", sa.String(length=1024)),
        sa.Column("form_recipient_email", sa.String(length=255)),
        sa.Column("form_recipient_name", sa.String(length=255)),
        sa.Column("sender_email", sa.String(length=255)),
        sa.Column("sender_name", sa.String(length=255)),
        sa.Column("form_confirmation_message", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "surveys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "chatbot_config_id",
            sa.Integer(),
            sa.ForeignKey("chatbot_configs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("survey_config", sa.JSON(), nullable=False),
        sa.Column("status", SurveyStatus, nullable=False, server_default="DRAFT"),
        *_timestamps(),
    )

    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("chatbot_config_id", sa.Integer(), sa.ForeignKey("chatbot_configs.id", ondelete="CASCADE")),
        sa.Column("active_survey_id", sa.Integer(), sa.ForeignKey("surveys.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_chat_sessions_session_id", "chat_sessions", ["session_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=255),
            sa.ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sender", sa.String(length=16), nullable=False),
        sa.Column("message_type", sa.String(length=32), nullable=False, server_default="text"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_messages_session_id", "messages", ["session_id"])

    op.create_table(
        "survey_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("survey_id", sa.Integer(), sa.ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "session_id",
            sa.String(length=255),
            sa.ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("current_question_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("responses", sa.JSON(), nullable=False),
        sa.Column("status", SurveySessionStatus, nullable=False, server_default="ACTIVE"),
        sa.Column("completion_handled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_survey_sessions_session_id", "survey_sessions", ["session_id"])

    op.create_table(
        "website_sources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "chatbot_config_id",
            sa.Integer(),
            sa.ForeignKey("chatbot_configs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_type", SourceType, nullable=False, server_default="WEBSITE"),
        sa.Column("url", sa.String(length=2048)),
        sa.Column("title", sa.String(length=512)),
        sa.Column("description", sa.Text()),
        sa.Column("text_content", sa.Text()),
        sa.Column("sitemap_url", sa.String(length=2048)),
        sa.Column("max_pages", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", SourceStatus, nullable=False, server_default="PENDING"),
        sa.Column("error_message", sa.Text()),
        sa.Column("last_scanned", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    op.create_table(
        "website_content",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "website_source_id",
            sa.Integer(),
            sa.ForeignKey("website_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(length=2048)),
        sa.Column("title", sa.String(length=512)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(length=32), nullable=False, server_default="page"),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("embedding", sa.JSON()),
        *_timestamps(),
    )

    op.create_table(
        "embed_designs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("embed_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column(
            "chatbot_config_id",
            sa.Integer(),
            sa.ForeignKey("chatbot_configs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("design_type", DesignType, nullable=False, server_default="MINIMAL"),
        sa.Column("primary_color", sa.String(length=32), nullable=False, server_default="#2563eb"),
        sa.Column("background_color", sa.String(length=32), nullable=False, server_default="#ffffff"),
        sa.Column("text_color", sa.String(length=32), nullable=False, server_default="#1f2937"),
        sa.Column("welcome_message", sa.Text()),
        sa.Column("welcome_type", WelcomeType, nullable=False, server_default="TEXT"),
        sa.Column(
            "input_placeholder",
            sa.String(length=255),
            nullable=False,
            server_default="Type your message...",
        ),
        sa.Column("show_avatar", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("show_timestamp", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hide_branding", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("custom_css", sa.Text()),
        sa.Column("cta_config", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "embed_design_components",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "embed_design_id",
            sa.Integer(),
            sa.ForeignKey("embed_designs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("component_name", sa.String(length=64), nullable=False),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("config", sa.JSON()),
        *_timestamps(),
        sa.UniqueConstraint("embed_design_id", "component_name"),
    )


def downgrade() -> None:
    op.drop_table("embed_design_components")
    op.drop_table("embed_designs")
    op.drop_table("website_content")
    op.drop_table("website_sources")
    op.drop_index("ix_survey_sessions_session_id", table_name="survey_sessions")
    op.drop_table("survey_sessions")
    op.drop_index("ix_messages_session_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_chat_sessions_session_id", table_name="chat_sessions")
    op.drop_table("chat_sessions")
    op.drop_table("surveys")
    op.drop_table("chatbot_configs")
    op.drop_table("subscriptions")
    op.drop_table("subscription_plans")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
