#!/usr/bin/env python3
"""Back up the local SQLite entry store into a gzip archive."""

from __future__ import annotations

import gzip
import os
import shutil
import sqlite3
from datetime import datetime, timezone
from pathlib import Path


def backup_database(db_path=None, backup_dir=None):
    db_path = Path(db_path or os.environ.get('DATABASE_PATH', 'entries.db'))
    backup_dir = Path(backup_dir or os.environ.get('BACKUP_DIR', 'backups'))
    if not db_path.exists():
        raise FileNotFoundError(f'no entry store at {db_path}')
    backup_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')
    raw_backup = backup_dir / f'entries_{ts}.sqlite3'
    gz_backup = Path(str(raw_backup) + '.gz')

    conn = sqlite3.connect(str(db_path))
    out = sqlite3.connect(str(raw_backup))
    with out:
        conn.backup(out)
    out.close()
    conn.close()

    with open(raw_backup, 'rb') as src, gzip.open(gz_backup, 'wb') as dst:
        shutil.copyfileobj(src, dst)
    raw_backup.unlink(missing_ok=True)

    print(f'backup_created={gz_backup}')
    return gz_backup


if __name__ == '__main__':
    backup_database()
