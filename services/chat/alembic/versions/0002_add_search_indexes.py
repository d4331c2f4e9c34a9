"""add search indexes

Full-text indexes, the relevance and text-extraction SQL functions, and the
precomputed search view. ``calculate_search_relevance`` must produce the same
scores as ``services.chat.relevance.calculate_relevance``.

The ordering indexes are created on every dialect; everything else is
PostgreSQL only.

Revision ID: 0002
Revises: 0001
Create Date: 2025-06-09 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

POSTGRES_UPGRADE = [
    """
    CREATE INDEX IF NOT EXISTS idx_thread_title_gin
    ON threads USING gin(to_tsvector('english', title))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_message_content_gin
    ON messages USING gin(to_tsvector('english', parts::text))
    """,
    """
    CREATE OR REPLACE FUNCTION calculate_search_relevance(
      thread_title text,
      message_content text,
      search_query text
    ) RETURNS integer AS $$
    BEGIN
      RETURN
        CASE
          WHEN strpos(LOWER(thread_title), LOWER(search_query)) > 0 THEN 3
          WHEN left(LOWER(thread_title), length(search_query)) = LOWER(search_query)
            THEN 2
          ELSE 1
        END +
        CASE
          WHEN strpos(LOWER(message_content), LOWER(search_query)) > 0 THEN 2
          ELSE 0
        END;
    END;
    $$ LANGUAGE plpgsql IMMUTABLE
    """,
    """
    CREATE OR REPLACE FUNCTION extract_message_text(parts_json json)
    RETURNS text AS $$
    DECLARE
      result text := '';
      part json;
    BEGIN
      IF json_typeof(parts_json) <> 'array' THEN
        RETURN '';
      END IF;
      FOR part IN SELECT * FROM json_array_elements(parts_json)
      LOOP
        IF json_typeof(part) = 'object' AND part->>'type' = 'text' THEN
          result := result || COALESCE(part->>'text', '') || ' ';
        END IF;
      END LOOP;
      RETURN TRIM(result);
    END;
    $$ LANGUAGE plpgsql IMMUTABLE
    """,
    """
    CREATE MATERIALIZED VIEW IF NOT EXISTS thread_search_index AS
    SELECT
      t.id,
      t.title,
      t.created_at,
      t.visibility,
      t.user_id,
      COUNT(m.id) AS message_count,
      MAX(m.created_at) AS last_message_at,
      COALESCE(
        (SELECT extract_message_text(m2.parts)
         FROM messages m2
         WHERE m2.thread_id = t.id
         ORDER BY m2.created_at DESC
         LIMIT 1),
        ''
      ) AS last_message_text,
      to_tsvector('english', t.title || ' ' || COALESCE(
        (SELECT extract_message_text(m2.parts)
         FROM messages m2
         WHERE m2.thread_id = t.id
         ORDER BY m2.created_at DESC
         LIMIT 1),
        ''
      )) AS search_vector
    FROM threads t
    LEFT JOIN messages m ON t.id = m.thread_id
    GROUP BY t.id, t.title, t.created_at, t.visibility, t.user_id
    """,
    # REFRESH ... CONCURRENTLY needs a unique index on the view
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_thread_search_index_id
    ON thread_search_index (id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_thread_search_vector
    ON thread_search_index USING gin(search_vector)
    """,
    """
    CREATE OR REPLACE FUNCTION refresh_thread_search_index()
    RETURNS void AS $$
    BEGIN
      REFRESH MATERIALIZED VIEW CONCURRENTLY thread_search_index;
    END;
    $$ LANGUAGE plpgsql
    """,
    "COMMENT ON INDEX idx_thread_title_gin IS "
    "'GIN index for full-text search on thread titles'",
    "COMMENT ON INDEX idx_message_content_gin IS "
    "'GIN index for full-text search on message content'",
    "COMMENT ON MATERIALIZED VIEW thread_search_index IS "
    "'Precomputed search vectors and last-message summaries per thread'",
    "COMMENT ON FUNCTION calculate_search_relevance IS "
    "'Search relevance score, mirrors the in-application formula'",
    "COMMENT ON FUNCTION extract_message_text IS "
    "'Text fragments of a message parts payload, joined by spaces'",
    "COMMENT ON FUNCTION refresh_thread_search_index IS "
    "'Refresh the thread search materialized view'",
]

POSTGRES_DOWNGRADE = [
    "DROP FUNCTION IF EXISTS refresh_thread_search_index()",
    "DROP MATERIALIZED VIEW IF EXISTS thread_search_index",
    "DROP FUNCTION IF EXISTS extract_message_text(json)",
    "DROP FUNCTION IF EXISTS calculate_search_relevance(text, text, text)",
    "DROP INDEX IF EXISTS idx_message_content_gin",
    "DROP INDEX IF EXISTS idx_thread_title_gin",
]


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    op.create_index(
        "idx_thread_search_composite",
        "threads",
        [sa.text("created_at DESC"), "visibility"],
    )
    op.create_index(
        "idx_message_thread_created",
        "messages",
        ["thread_id", sa.text("created_at DESC")],
    )
    if _is_postgres():
        for statement in POSTGRES_UPGRADE:
            op.execute(statement)


def downgrade() -> None:
    if _is_postgres():
        for statement in POSTGRES_DOWNGRADE:
            op.execute(statement)
    op.drop_index("idx_message_thread_created", table_name="messages")
    op.drop_index("idx_thread_search_composite", table_name="threads")
