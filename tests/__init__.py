"""
Veritas Audit test suite.

Tests are organized by layer:
    tests/unit/         Unit tests (tmp_path file I/O only)
    tests/integration/  CLI tests through click.testing.CliRunner
    tests/safety/       Guards on wire-format constants

Run all tests:
    pytest

Run unit tests only:
    pytest tests/unit/
"""
