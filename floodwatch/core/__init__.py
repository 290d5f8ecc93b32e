"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON / pretty logging with cycle context
    errors          — exception hierarchy & FastAPI handlers
    database        — async SQLAlchemy engine for the area store
    cache           — optional Redis cache for forecast lookups
"""
