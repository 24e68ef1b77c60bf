"""
Dashboard Package.

HTTP access to the portfolio tracker.

Modules:
- api: FastAPI application
- routers/: portfolio, market, sync, sales and health routes
- services: queries behind the routes
- schemas: pydantic response models
"""
