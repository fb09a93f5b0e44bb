"""genproxy - FastAPI REST API layer.

Modules
-------
main
    FastAPI application with the route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic response envelopes returned by every endpoint.
"""
