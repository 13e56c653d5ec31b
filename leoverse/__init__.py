"""leoverse: Leonardo.ai generation client with an Airtable relay.

Package layout:
    - `core`: configuration, errors, cancellation, and the remote HTTP client.
    - `leonardo`: session cookie store, GraphQL orchestration, downloads.
    - `airtable`: work-item listing, upload validation, and batch relay.
    - `api`: command-line interface.
"""
