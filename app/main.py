import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.companies import router as companies_router
from app.api.deps import require_user_auth
from app.api.events import router as events_router
from app.api.groups import router as groups_router
from app.api.modules import router as modules_router
from app.api.print_queue import router as print_queue_router
from app.api.records import router as records_router
from app.api.users import permissions_router
from app.api.users import router as users_router
from app.api.webhooks import router as webhooks_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.sse import sse_hub


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    sse_hub.shutdown()


app = FastAPI(title=f"{settings.brand_name} API", lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(modules_router, dependencies=[Depends(require_user_auth)])
_include_api_router(records_router, dependencies=[Depends(require_user_auth)])
_include_api_router(groups_router, dependencies=[Depends(require_user_auth)])
_include_api_router(users_router, dependencies=[Depends(require_user_auth)])
_include_api_router(permissions_router, dependencies=[Depends(require_user_auth)])
_include_api_router(companies_router, dependencies=[Depends(require_user_auth)])
_include_api_router(print_queue_router, dependencies=[Depends(require_user_auth)])
_include_api_router(webhooks_router, dependencies=[Depends(require_user_auth)])
_include_api_router(events_router, dependencies=[Depends(require_user_auth)])

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir),
    name="uploads",
)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
