from fastapi import APIRouter

from docpreview.api.v1.endpoints import documents, migrations, previews

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(previews.router, prefix="/documents/blob/preview", tags=["Previews"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(migrations.router, prefix="/migrations", tags=["Migrations"])

__all__ = ["api_router"]
