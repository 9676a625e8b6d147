"""Core domain logic for remote patient monitoring.

This package contains the messaging and alerting business logic and domain
models, isolated from transports and presentation for easy testing.
"""
