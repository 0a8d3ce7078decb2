"""Loading Redis fixtures into Redis databases."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import redis

from gonkey.fixtures.redis_model import Context, Database, Fixture
from gonkey.fixtures.redis_parser import FileParser

__all__ = ["RedisLoader"]


def _has_expiration(expiration: timedelta) -> bool:
    return expiration > timedelta(0)


class RedisLoader:
    """Flushes each touched database once and fills it with fixture data."""

    def __init__(self, fixture_dir: str, client: Any) -> None:
        self.locations = [fixture_dir]
        self.client = client

    @staticmethod
    def from_url(fixture_dir: str, url: str) -> RedisLoader:
        """Create a loader connected to the server at ``url``; raise ValueError if invalid."""
        return RedisLoader(fixture_dir, redis.Redis.from_url(url))

    def load(self, names: list[str]) -> None:
        """Parse the named fixtures and load them."""
        fixtures = FileParser(self.locations).parse_files(Context(), names)
        self._load_data(fixtures)

    def _load_data(self, fixtures: list[Fixture]) -> None:
        flushed: set[int] = set()
        for fixture in fixtures:
            for db_id, database in fixture.databases.items():
                need_flush = db_id not in flushed
                flushed.add(db_id)
                self._load_database(db_id, database, need_flush)

    def _load_database(self, db_id: int, database: Database, need_flush: bool) -> None:
        pipe = self.client.pipeline(transaction=False)
        pipe.execute_command("SELECT", db_id)
        if need_flush:
            pipe.flushdb()

        if database.keys is not None:
            for key, item in database.keys.values.items():
                if _has_expiration(item.expiration):
                    pipe.set(key, item.value.value, px=item.expiration)
                else:
                    pipe.set(key, item.value.value)

        if database.sets is not None:
            for key, record in database.sets.values.items():
                pipe.sadd(key, *(item.value.value for item in record.values))
                self._expire(pipe, key, record.expiration)

        if database.hashes is not None:
            for key, record in database.hashes.values.items():
                pipe.hset(key, mapping={item.key.value: item.value.value for item in record.values})
                self._expire(pipe, key, record.expiration)

        if database.lists is not None:
            for key, record in database.lists.values.items():
                pipe.rpush(key, *(item.value.value for item in record.values))
                self._expire(pipe, key, record.expiration)

        if database.zsets is not None:
            for key, record in database.zsets.values.items():
                pipe.zadd(key, {item.value.value: item.score for item in record.values})
                self._expire(pipe, key, record.expiration)

        pipe.execute()

    @staticmethod
    def _expire(pipe: Any, key: str, expiration: timedelta) -> None:
        if _has_expiration(expiration):
            pipe.pexpire(key, expiration)