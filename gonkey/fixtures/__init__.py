"""Fixture loaders for PostgreSQL, MySQL, Aerospike and Redis, and the Redis fixture model and parser."""