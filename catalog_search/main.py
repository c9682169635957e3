from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catalog_search.core.config import settings
from catalog_search.core.exceptions import SearchServiceError
from catalog_search.core.logging_config import setup_logging
from catalog_search.core.mongo import close_mongo, connect_mongo
from catalog_search.routers.search import router as search_router
from catalog_search.schemas.search import ErrorResponse

# Setup logging (must be done before any other imports that use logging)
setup_logging(log_level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await connect_mongo()
    yield
    # Shutdown
    await close_mongo()


app = FastAPI(
    title="Catalog Smart Search API",
    description="Natural-language product search with LLM query interpretation and answers",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(search_router)


@app.exception_handler(SearchServiceError)
async def search_error_handler(request: Request, exc: SearchServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=f"Invalid request: {details}").model_dump(),
    )


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
