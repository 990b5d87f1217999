#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Database schema definitions for the fingerprint store.

h1..h4 hold the fingerprint's unsigned 32-bit words in big-endian order, and
``fullpath`` holds the dedup key, not the filesystem path.
"""

MAIN_SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS key_hashes (
    fullpath TEXT,
    mtime TEXT,
    frame INTEGER,
    h1 BIGINT,
    h2 BIGINT,
    h3 BIGINT,
    h4 BIGINT
);

CREATE INDEX IF NOT EXISTS idx_key_hashes_hash ON key_hashes(h1, h2, h3, h4);
"""

UNIQUE_INDEX_NAME = "idx_key_hashes_unique"

UNIQUE_INDEX_TEMPLATE = "CREATE UNIQUE INDEX IF NOT EXISTS " + UNIQUE_INDEX_NAME + " ON key_hashes({columns});"

INSERT_HASHES = "INSERT INTO key_hashes(fullpath, frame, h1, h2, h3, h4) VALUES (?, ?, ?, ?, ?, ?)"

LOOKUP_HASHES = "SELECT fullpath, frame FROM key_hashes WHERE h1=? AND h2=? AND h3=? AND h4=?"
