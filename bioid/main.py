from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bioid.api import deps
from bioid.api.routes import analyses, providers, sessions
from bioid.config import settings
from bioid.services.debug_report import server_debug


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    deps.stop_all()


app = FastAPI(
    title="BioID Resolver",
    description="Batch resolution of gene, protein and chemical names into canonical identifiers",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analyses.router)
app.include_router(sessions.router)
app.include_router(providers.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "bioid"}


@app.get("/api/debug")
async def debug():
    return server_debug()
