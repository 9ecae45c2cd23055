# api/main.py

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import agents, dashboard

# Charge .env en local uniquement
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s : %(message)s",
)
logger = logging.getLogger("stagnation.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Stagnation API — Démarrage")
    yield
    logger.info("Stagnation API — Arrêt")


app = FastAPI(
    title="Pipeline Stagnation API",
    version="1.0.0",
    description="Détection de stagnation du pipeline commercial",
    lifespan=lifespan,
)

# ─────────────────────────────────────────
# CORS
# ─────────────────────────────────────────
# FRONTEND_ORIGINS="https://crm.example.com,https://staging.example.com"
frontend_origins = os.getenv("FRONTEND_ORIGINS", "")
origins = ["http://localhost:3000"]    # Next.js local

if frontend_origins:
    origins.extend([o.strip() for o in frontend_origins.split(",") if o.strip()])

origins = sorted(set(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],  # inclut X-API-KEY
)

# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────
app.include_router(agents.router, prefix="/agents", tags=["agents"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])

# ─────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────
@app.get("/")
def root() -> dict:
    return {"status": "ok", "service": "stagnation-api"}

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "stagnation-api"}

# ─────────────────────────────────────────
# ERREURS GLOBALES
# ─────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Erreur non gérée — {request.method} {request.url}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Erreur interne", "detail": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
