from fastapi import APIRouter, Depends
from sqlalchemy import Engine, text

from opgl_gateway.deps.db import get_engine

router = APIRouter(tags=["health"])


@router.api_route("/health", methods=["GET", "POST"])
def health(engine: Engine = Depends(get_engine)):
    # Check the database
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    return {
        "status": "healthy",
        "service": "opgl-gateway",
        "database": "ok",
    }
