# gonkey

Building blocks for declarative HTTP API tests. The package compares expected
and actual responses, checks response bodies, headers and database state,
runs helper scripts under a time limit, and loads YAML fixtures into
PostgreSQL, MySQL, Aerospike and Redis.

The `test` extra installs pytest for the package's own test suite.

## Comparing values

`gonkey.compare.compare(expected, actual, params)` walks an expected structure
and an actual one. It returns a list of mismatch messages, and the list is
empty when the two match. Each message gives the path of the mismatch, such as
`$.items[0].id`. An expected string of the form `$matchRegexp(<pattern>)`
matches the actual value, written out as text, against the pattern.

```python
from gonkey.compare import Params, compare, compare_query

errors = compare(
    {"id": "$matchRegexp(^\\d+$)", "tags": ["a", "b"]},
    {"id": 42, "tags": ["b", "a"], "extra": True},
    Params(ignore_arrays_ordering=True),
)
assert errors == []

assert compare_query(["tea", "$matchRegexp(^c\\w+)"], ["cake", "tea"])
```

`Params` is a frozen dataclass with these flags, all off by default:

- `ignore_values`: compare only structure and types, not leaf values.
- `ignore_arrays_ordering`: match array elements in any order.
- `disallow_extra_fields`: fail when the expected and actual maps differ in size.
  Without it, keys in the actual map that are not expected are allowed.
- `fail_fast`: stop at the first mismatch.
- `ignore_db_ordering`: carried on the options, but `compare` does not read it.
  The database checker takes row ordering from the test instead.

`compare_query(expected, actual)` tells whether two lists of query-string
values match in any order. Regex values are allowed. It raises `ValueError`
when the lists differ in length.

## Models

`gonkey.models` holds the shared data types:

- `Result`, with `passed()` and `allure_status()`. `allure_status()` returns
  the report status and the failure text, if any.
- `DatabaseResult`, `Form` and `Summary`.
- The protocols `TestInterface`, `DatabaseCheck` and `Checker`. A test case
  object must follow `TestInterface` to be checked.

## Checkers

Each checker has `check(test, result)`, which returns a list of failure
messages:

- `gonkey.checkers.response_body.ResponseBodyChecker` compares the body with
  the one expected for the status code. It compares as JSON when the content
  type contains `json`. It raises `ValueError` if the expected JSON is invalid.
- `gonkey.checkers.response_header.ResponseHeaderChecker` checks that each
  expected header is present and that one of its values matches.
  `canonical_header_key` turns a name such as `content-type` into
  `Content-Type`.
- `gonkey.checkers.response_db.ResponseDbChecker(db)` takes a DB-API
  connection to PostgreSQL. It runs each query of the test, wrapped in
  `row_to_json`, and compares the rows that come back with the expected ones.

## Fixtures

`gonkey.fixtures.loader.new_loader(FixturesConfig(...))` builds a loader for
the configured `DbType`:

- `PostgresLoader` and `MysqlLoader` take a DB-API connection.
- `AerospikeLoader` takes a client object that offers
  `truncate(set_name)` and `insert_bin_map(set_name, key, bin_map)`.
- For any other type, `new_loader` returns the `fixture_loader` given in the
  config, or raises `ValueError` if none was given.

`fetch_db_type("postgres" | "mysql" | "aerospike" | "redis")` maps a name to a
`DbType`.

A loader's `load(names)` reads YAML fixture files from its directory. It tries
each name as given, then with `.yml`, then with `.yaml`. It resolves
`inherits`, templates and `$extend`, truncates the target tables or sets, and
inserts the rows. In SQL fixtures, values of the form `$eval(<expression>)`
are inserted as SQL expressions, and `$ref.field` takes a field from a row
inserted earlier under `$name`.

Redis fixtures are parsed by `gonkey.fixtures.redis_parser.FileParser` into
the dataclasses of `gonkey.fixtures.redis_model`. They are loaded with
`gonkey.fixtures.redis_loader.RedisLoader`, which flushes each database it
touches once before filling it:

```python
from gonkey.fixtures.redis_loader import RedisLoader

loader = RedisLoader.from_url("fixtures", "redis://localhost:6379/0")
loader.load(["redis"])
```

## Scripts

`gonkey.cmd_runner.cmd_run(path, timeout)` runs a helper script and prints its
output. A timeout of zero or less means the default of 3 seconds. When the
timeout passes, the script is stopped; on POSIX systems its whole process
group is stopped. `cmd_run` raises `ScriptError` when the script exits with an
error.

## What the package does not do

The package provides no command-line program. It includes no runner that reads
test files and sends HTTP requests, no mock servers, and no report output. It
ships no SQL drivers or Aerospike client. Database connections and clients are
supplied by the caller.