# ABOUTME: SQL DDL statements for the shelfsync key-value store.
# ABOUTME: One table of JSON blobs keyed by name, plus schema version bookkeeping.

SCHEMA_V1 = """
-- JSON-serialized values keyed by a well-known name
CREATE TABLE kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""
