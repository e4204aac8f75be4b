# This file bootstraps the FastAPI app, wires up the logging and
# metrics middlewares, and includes the postback and admin routers.

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
import os
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from postbacks.core.db import Base, engine
import postbacks.models  # noqa: F401  registers tables on Base.metadata

from postbacks.core.errors import PostbackError
from postbacks.core.logging import APILoggingMiddleware
from postbacks.core.metrics import MetricsMiddleware
from postbacks.core.tracing import RequestContextMiddleware

from postbacks.api.postbacks import router as postbacks_router
from postbacks.api.reports import router as reports_router


# Create DB tables right away for local runs; deployments use alembic
# and set SKIP_MIGRATIONS=1.
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Affiliate Postbacks")


@app.exception_handler(PostbackError)
def handle_postback_error(_request, exc: PostbackError):
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    if exc.retryable:
        response.headers["Retry-After"] = "1"
    return response


# Observability layers
app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)

app.include_router(postbacks_router)
app.include_router(reports_router)

# Attach request_id early so logs and rejection rows can be correlated.
app.add_middleware(RequestContextMiddleware)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/ping")
def ping():
    return {"message": "pong"}
