"""Leonardo.ai browser-session API adapter package.

Module split:
    - `session`: cookie credential store.
    - `queries`: GraphQL operation documents and status constants.
    - `generation`: submit/poll/fetch orchestrator.
    - `download`: asset downloader.
"""
