"""Checkers that verify response bodies, headers and database state."""