"""
Beacon Test Suite
=================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks and in-process fakes
- tests/integration/   : Integration tests against a real SQLite database
- tests/fixtures/      : Handler packages scanned by discovery tests

Testing Philosophy
------------------
- Unit tests: fast, isolated, no network except loopback HTTP
- Integration tests: exercise the SQL accessors end to end
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
