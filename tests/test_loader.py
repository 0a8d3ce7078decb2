import pytest

from gonkey.fixtures.aerospike import AerospikeLoader
from gonkey.fixtures.loader import DbType, FixturesConfig, fetch_db_type, new_loader
from gonkey.fixtures.mysql import MysqlLoader
from gonkey.fixtures.postgres import PostgresLoader


@pytest.mark.parametrize(
    "param, expected",
    [
        ("postgres", DbType.POSTGRES),
        ("mysql", DbType.MYSQL),
        ("aerospike", DbType.AEROSPIKE),
        ("redis", DbType.REDIS),
    ],
)
def test_fetch_db_type(param, expected):
    assert fetch_db_type(param) is expected


def test_fetch_db_type_unknown():
    with pytest.raises(ValueError, match="unknown db type param"):
        fetch_db_type("oracle")


@pytest.mark.parametrize(
    "db_type, loader_type",
    [
        (DbType.POSTGRES, PostgresLoader),
        (DbType.MYSQL, MysqlLoader),
        (DbType.AEROSPIKE, AerospikeLoader),
    ],
)
def test_new_loader_by_type(db_type, loader_type):
    loader = new_loader(FixturesConfig(db_type=db_type, location="fixtures///", debug=True))
    assert isinstance(loader, loader_type)
    assert loader.location == "fixtures"
    assert loader.debug is True


class CustomLoader:
    def load(self, names):
        return names


def test_new_loader_custom():
    custom = CustomLoader()
    config = FixturesConfig(db_type=DbType.CUSTOM_LOADER, fixture_loader=custom)
    assert new_loader(config) is custom


def test_new_loader_without_loader_raises():
    with pytest.raises(ValueError, match="unknown db type"):
        new_loader(FixturesConfig(db_type=DbType.REDIS))