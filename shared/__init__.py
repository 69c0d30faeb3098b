"""
Shared utilities for the rule engine.

This package aggregates common building blocks consumed by the engine:

- config: Engine configuration via pydantic-settings
- logging: Structured logging with evaluation correlation
- errors: Canonical error types and reports
- test_helpers: Sample rules, models and stub qualifiers for tests

Do not import from rule_engine into shared/.
"""
