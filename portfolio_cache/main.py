from fastapi import FastAPI

from portfolio_cache.logging_config import configure_logging
from portfolio_cache.routers import cache

# Configure logging at startup
configure_logging()

app = FastAPI(title="Portfolio Cache")

app.include_router(cache.router, prefix="/cache", tags=["cache"])


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
