"""Shared infrastructure package.

Composition:
    - `config`: environment-driven settings and cookie lookup.
    - `errors`: exception taxonomy used across all layers.
    - `cancel`: cancellation token / wait primitive for polling.
    - `remote`: authenticated HTTP transport for both remote services.

Package import is side-effect free; `.env` loading happens in the CLI.
"""
