# Services package init
"""
MakerBench Backend — Services Layer
=====================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
How:   Services accept a database session plus plain values, apply business
       rules and return Pydantic response models. Each module exposes a
       singleton instance that routes import (and tests patch).

Service Inventory:
    - SearchService:        Filtered, paginated bookmark queries and row grouping
    - TagService:           Tag listing, popularity ranking, get-or-create
    - BookmarkService:      Submission workflow and moderation status changes
    - MetadataService:      Page title / description / OG image extraction
    - ScreenshotProvider:   Interface for page-rendering backends
    - ScreenshotService:    Browserless implementation with retry + circuit breaker
    - ImageStorageService:  Screenshot files on local disk
"""
