import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_manager.core.config import settings
from portfolio_manager.core.exceptions import PortfolioError
from portfolio_manager.core.logging import setup_logging
from portfolio_manager.db.session import engine, Base
from portfolio_manager import models  # noqa: F401  registers every table on Base

from portfolio_manager.routes import auth_router
from portfolio_manager.routes import user_router
from portfolio_manager.routes import asset_router
from portfolio_manager.routes import portfolio_router
from portfolio_manager.routes import transaction_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Portfolio Manager")

origins = [
    settings.FRONTEND_BASE_URL,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Include authentication router
app.include_router(auth_router.router)
# Include user router
app.include_router(user_router.router)
# Include asset router
app.include_router(asset_router.router)
# Include portfolio router
app.include_router(portfolio_router.router)
# Include transaction router
app.include_router(transaction_router.router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Portfolio Manager!"}
