#!/usr/bin/env python3
from __future__ import annotations

import os
import sqlite3
import sys
from pathlib import Path


def _sqlite_path_from_sqla_url(url: str) -> Path:
    if not url.startswith("sqlite"):
        raise ValueError(f"DB_PATH is not sqlite: {url}")
    if url.startswith("sqlite+"):
        # sqlite+aiosqlite:///... -> sqlite:///...
        url = "sqlite:" + url.split(":", 1)[1]
    rest = url[len("sqlite:") :]
    rest = rest.split("?", 1)[0]
    if rest.startswith("///"):
        return Path(rest[3:])
    return Path(rest.lstrip("/"))


def main() -> int:
    db_url = os.environ.get("DB_PATH", "sqlite+aiosqlite:///./data/routine.db")
    try:
        db_path = _sqlite_path_from_sqla_url(db_url)
    except ValueError as exc:
        print(f"ERROR: failed to parse DB_PATH={db_url!r}: {exc}", file=sys.stderr)
        return 2

    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()

    print(f"DB_PATH={db_url}")
    print(f"SQLite file={db_path} (exists={db_path.exists()})")
    if not db_path.exists():
        print("WARN: DB file not found. If this is not a first run, check your volume mount.", file=sys.stderr)
        return 1

    con = sqlite3.connect(str(db_path))
    try:
        con.execute("PRAGMA busy_timeout=30000;")
        journal_mode = con.execute("PRAGMA journal_mode;").fetchone()[0]
        total = con.execute("SELECT COUNT(*) FROM chat_state;").fetchone()[0]
        cached = con.execute("SELECT COUNT(*) FROM chat_state WHERE last_section IS NOT NULL;").fetchone()[0]
        print(f"journal_mode={journal_mode}")
        print(f"chat_state_rows={total} with_cached_section={cached}")
        rows = con.execute(
            "SELECT chat_id, COALESCE(last_section, ''), updated_at "
            "FROM chat_state ORDER BY updated_at DESC LIMIT 5;"
        ).fetchall()
        for chat_id, last_section, updated_at in rows:
            print(f"row: chat_id={chat_id} last_section={last_section or '-'!r} updated_at={updated_at}")
        sections = con.execute(
            "SELECT last_section, COUNT(*) FROM chat_state WHERE last_section IS NOT NULL "
            "GROUP BY last_section ORDER BY COUNT(*) DESC LIMIT 5;"
        ).fetchall()
        for section, count in sections:
            print(f"popular: {section} chats={count}")
    finally:
        con.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
