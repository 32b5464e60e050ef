"""Main API router for v1 endpoints."""

from fastapi import APIRouter

from app.api.v1 import webhooks, whatsapp

router = APIRouter()

# Include all sub-routers
router.include_router(webhooks.router)  # Z-API callbacks (no auth, account in path)
router.include_router(whatsapp.router)


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "message": "Zapdesk API is running"}
