from datetime import timedelta

import pytest

from gonkey.fixtures.redis_loader import RedisLoader
from gonkey.fixtures.redis_parser import FixtureFileLoadError


class FakePipeline:
    def __init__(self, log):
        self.log = log
        self.commands = []

    def execute_command(self, *args):
        self.commands.append(args)

    def flushdb(self):
        self.commands.append(("FLUSHDB",))

    def set(self, name, value, px=None):
        self.commands.append(("SET", name, value, px))

    def sadd(self, name, *values):
        self.commands.append(("SADD", name, values))

    def hset(self, name, mapping=None):
        self.commands.append(("HSET", name, mapping))

    def rpush(self, name, *values):
        self.commands.append(("RPUSH", name, values))

    def zadd(self, name, mapping):
        self.commands.append(("ZADD", name, mapping))

    def pexpire(self, name, time):
        self.commands.append(("PEXPIRE", name, time))

    def execute(self):
        self.log.append(self.commands)


class FakeClient:
    def __init__(self):
        self.executed = []

    def pipeline(self, transaction=True):
        return FakePipeline(self.executed)


FULL = """
databases:
  1:
    keys:
      values:
        a:
          value: v
          expiration: 10s
        b:
          value: 2
    sets:
      values:
        s1:
          expiration: 5s
          values:
            - value: x
            - value: y
    hashes:
      values:
        h1:
          values:
            - key: k
              value: 1
    lists:
      values:
        l1:
          values:
            - value: 1
            - value: two
    zsets:
      values:
        z1:
          values:
            - value: m
              score: 1.5
"""


def test_load_issues_commands(tmp_path):
    (tmp_path / "full.yaml").write_text(FULL)
    client = FakeClient()
    RedisLoader(str(tmp_path), client).load(["full"])
    assert client.executed == [
        [
            ("SELECT", 1),
            ("FLUSHDB",),
            ("SET", "a", "v", timedelta(seconds=10)),
            ("SET", "b", 2, None),
            ("SADD", "s1", ("x", "y")),
            ("PEXPIRE", "s1", timedelta(seconds=5)),
            ("HSET", "h1", {"k": 1}),
            ("RPUSH", "l1", (1, "two")),
            ("ZADD", "z1", {"m": 1.5}),
        ]
    ]


def test_database_flushed_only_once(tmp_path):
    (tmp_path / "first.yaml").write_text("databases:\n  3:\n    keys:\n      values:\n        a:\n          value: x\n")
    (tmp_path / "second.yaml").write_text("databases:\n  3:\n    keys:\n      values:\n        b:\n          value: y\n")
    client = FakeClient()
    RedisLoader(str(tmp_path), client).load(["first", "second"])
    assert len(client.executed) == 2
    assert client.executed[0][:2] == [("SELECT", 3), ("FLUSHDB",)]
    assert ("FLUSHDB",) not in client.executed[1]
    assert client.executed[1][0] == ("SELECT", 3)


def test_missing_fixture(tmp_path):
    with pytest.raises(FixtureFileLoadError):
        RedisLoader(str(tmp_path), FakeClient()).load(["absent"])


def test_from_url_parses_host():
    loader = RedisLoader.from_url("fixtures", "redis://localhost:6379/0")
    assert loader.client.connection_pool.connection_kwargs["host"] == "localhost"
    assert loader.locations == ["fixtures"]


def test_from_url_rejects_invalid_url():
    with pytest.raises(ValueError):
        RedisLoader.from_url("fixtures", "not a url")