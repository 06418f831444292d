from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adaptiq.api.health import router as health_router
from adaptiq.api.quiz_sessions import router as quiz_sessions_router
from adaptiq.core.bootstrap import initialize_database
from adaptiq.core.errors import register_error_handling
from adaptiq.core.logging import configure_logging
from adaptiq.core.settings import settings
from adaptiq.memory.database import SessionLocal, engine

configure_logging(settings.log_level)

app = FastAPI(title="Adaptiq API", version="0.1.0")
app.include_router(health_router)
app.include_router(quiz_sessions_router)
register_error_handling(app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    async with SessionLocal() as session:
        await initialize_database(session, engine)


@app.on_event("shutdown")
async def on_shutdown():
    await engine.dispose()
