# main.py
import logging
logger = logging.getLogger("uvicorn.error")
import os

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()
from config import BASE_PATH
from db.migrate import run_migrations
from localdb.records import default_db_path
from security.logging_filters import install_redaction
from api.budget import router as budget_router
from api.habits import router as habits_router


app = FastAPI(title="lifelog", root_path=BASE_PATH)
app.include_router(habits_router)
app.include_router(budget_router)


@app.on_event("startup")
async def startup():
    install_redaction()
    # Schema for the local record store
    db_path = default_db_path()
    try:
        applied = run_migrations(db_path)
        if applied:
            logger.info(f"[MIGRATIONS] Applied: {', '.join(applied)}")
        else:
            logger.info("[MIGRATIONS] No pending migrations")
    except Exception as e:
        logger.exception(f"[MIGRATIONS] Failed to run migrations on {db_path}: {e}")
        raise
    logger.info("[INIT] lifelog startup complete.")


@app.get("/health")
def health():
    return {"status": "ok", "db_path": str(default_db_path())}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
