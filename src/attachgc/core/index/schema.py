# src/attachgc/core/index/schema.py
"""SQLAlchemy table definitions for the attachment index.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with multiple database backends.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

# Shared metadata for all tables
metadata = MetaData()

# === Index Records ===

# One row per (owner, content hash). data_json holds the record document as
# written by clients; refcount lives inside it and is not trusted to be valid.
attachments_index_table = Table(
    "attachments_index",
    metadata,
    Column("owner_id", String(128), primary_key=True),
    Column("content_hash", String(128), primary_key=True),
    Column("data_json", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# === Trigger Journal ===

# Appended in the same transaction as every index write. Rows are leased by
# the dispatcher and marked delivered after the collector has handled them.
index_events_table = Table(
    "index_events",
    metadata,
    Column("event_id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(128), nullable=False),
    Column("content_hash", String(128), nullable=False),
    Column("write_kind", String(16), nullable=False),
    Column("before_json", Text),
    Column("after_json", Text),
    Column("status", String(16), nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("lease_expires_at", DateTime(timezone=True)),
    Column("last_error", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("delivered_at", DateTime(timezone=True)),
)

Index("ix_index_events_status_event_id", index_events_table.c.status, index_events_table.c.event_id)
