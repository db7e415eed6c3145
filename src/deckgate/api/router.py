"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from deckgate.api import access, decks, health, links

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

# Viewer flows, no owner credentials
api_router.include_router(access.router, prefix="/access", tags=["access"])

# Owner endpoints
api_router.include_router(decks.router, prefix="/decks", tags=["decks"])
api_router.include_router(links.router, prefix="/links", tags=["links"])
