import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import LOG_LEVEL, WEB_ORIGIN
from runtime import AssistantRuntime, build_runtime
from routes.assistant import router as assistant_router
from routes.google_oauth import router as google_auth_router
from routes.google_calendar import router as google_calendar_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(runtime: Optional[AssistantRuntime] = None) -> FastAPI:
    """
    runtime을 주면 그대로 쓰고(백그라운드 잡은 시작하지 않음),
    없으면 시작 시점에 실제 협력자로 조립한 뒤 디스패처/일일 요약 잡을 띄운다.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.runtime is None
        if owned:
            app.state.runtime = build_runtime()
            app.state.runtime.start()
        try:
            yield
        finally:
            if owned:
                app.state.runtime.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[WEB_ORIGIN] if WEB_ORIGIN else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(google_auth_router)
    app.include_router(google_calendar_router)
    app.include_router(assistant_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
