import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum
from starlette.middleware.base import BaseHTTPMiddleware

from shelter_giving.api import routers
from shelter_giving.core.config import get_settings
from shelter_giving.core.logging_config import configure_logging

configure_logging()

CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-Amz-Date, X-Api-Key, X-Amz-Security-Token, stripe-signature"
CORS_ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS, PATCH"


def _cors_headers(origin: str) -> dict:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Credentials": "true",
    }


def create_app() -> FastAPI:
    settings = get_settings()
    origins = settings.CORS_ORIGINS
    allow_origin = origins[0] if len(origins) == 1 else ",".join(origins)

    app = FastAPI(
        title="Shelter Giving API",
        root_path=os.getenv("API_ROOT_PATH", "")
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    # API Gateway strips headers added by CORSMiddleware on some error paths
    class CORSHeaderMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            response = await call_next(request)
            response.headers.update(_cors_headers(allow_origin))
            return response

    app.add_middleware(CORSHeaderMiddleware)

    @app.options("/{full_path:path}")
    async def options_handler(request: Request, full_path: str):
        return JSONResponse(content={}, headers=_cors_headers(allow_origin))

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Shelter Giving API"}

    app.include_router(routers.router)
    return app


app = create_app()

handler = Mangum(app)
