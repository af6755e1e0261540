import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse

from familytree.core.config import settings
from familytree.core.logging import configure_logging
from familytree.routers import auth, families, health, persons, posts, relationships, users
from familytree.services.errors import DomainError

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Family Tree API",
    version="1.0.0",
    description="API for families, persons, relationship graphs, and family posts.",
    # Served behind a proxy under a path prefix; see the custom /docs route below.
    docs_url=None,
    root_path=settings.root_path,
)


# Custom Swagger UI that points at the externally reachable OpenAPI URL.
@app.get("/docs", include_in_schema=False)
def swagger_ui():
    prefix = (settings.root_path or "").rstrip("/")
    openapi_url = f"{prefix}{app.openapi_url}"
    return get_swagger_ui_html(openapi_url=openapi_url, title=f"{app.title} - Docs")


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(families.router)
app.include_router(persons.router)
app.include_router(relationships.router)
app.include_router(posts.router)
