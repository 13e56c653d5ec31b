"""leoverse interface package.

Scope:
- Flag/environment parsing and component wiring for the terminal.
- No generation or datastore logic is implemented in this package root.
"""
