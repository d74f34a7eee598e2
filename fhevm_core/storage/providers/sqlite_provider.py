from __future__ import annotations
from typing import Optional
import sqlite3, os
from fhevm_core.storage.provider import StringStorage


class SQLiteStorage(StringStorage):
    def __init__(self, path="db/fhevm_state.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)

        self._init()

    def _init(self) -> None:
        self.db.execute("""CREATE TABLE IF NOT EXISTS kv(
            k TEXT PRIMARY KEY,
            v TEXT NOT NULL
        )""")
        self.db.commit()

    async def get_item(self, key: str) -> Optional[str]:
        cur = self.db.execute("SELECT v FROM kv WHERE k=?", (key,))
        row = cur.fetchone()
        if not row: return None
        return row[0]

    async def set_item(self, key: str, value: str) -> None:
        self.db.execute(
            "INSERT INTO kv(k,v) VALUES(?,?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
            (key, value)
        )
        self.db.commit()

    async def remove_item(self, key: str) -> None:
        self.db.execute("DELETE FROM kv WHERE k=?", (key,))
        self.db.commit()

    def close(self):
        self.db.close()
