from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import env
from api.artifacts.router import router as artifacts_router
from database import get_database_manager
from services.artifact_pipeline import get_artifact_pipeline

app = FastAPI(
    title="Package Registry Artifact API",
    description="Package artifact storage, conversion and debloating",
    version="1.0.0",
)

# Include routers
app.include_router(artifacts_router)

# Initialize database manager
db_manager = get_database_manager()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Connect the artifact store and build the pipeline on startup."""
    try:
        if env.ARTIFACT_STORE_BACKEND == "gridfs":
            db_manager.connect()
            db_manager.client.admin.command("ping")
            print("MongoDB connection successful")

        get_artifact_pipeline()
        print(f"Artifact pipeline ready ({env.ARTIFACT_STORE_BACKEND} store, staging at {env.STAGING_ROOT})")

    except Exception as e:
        print(f"Startup failed: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Close database connection on shutdown."""
    db_manager.disconnect()
    print("MongoDB connection closed")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to the Package Registry Artifact API",
        "version": "1.0.0",
        "store": env.ARTIFACT_STORE_BACKEND,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    store_status = "n/a"
    if env.ARTIFACT_STORE_BACKEND == "gridfs":
        try:
            db_manager.client.admin.command("ping")
            store_status = "connected"
        except Exception:
            store_status = "disconnected"

    return {"status": "healthy", "store": store_status}
