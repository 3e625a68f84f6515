from dotenv import load_dotenv

# Load environment variables BEFORE any imports that read them
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from api.dependencies import get_github_app_service
from api.routers import github_app, reviews, webhook
from common.config import get_settings

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Logs whether the GitHub App credentials are present; the app still starts
    without them so the operational endpoints can report the problem.
    """
    config = get_github_app_service().signer.redacted_config()
    logger.info(f"GitHub App configuration: {config}")
    yield


app = FastAPI(
    title="AI Code Review Bot",
    description="""
    GitHub App backend that reviews pull requests with a language model.

    ## Features

    * **Webhook-driven reviews** - opened, synchronize and reopened pull requests are reviewed in the background
    * **GitHub App authentication** - signed app assertions, per-account installation cache, installation tokens
    * **Pluggable models** - OpenAI, OpenRouter, Ollama or Hugging Face, selected by configuration
    * **Review history** - review records stored in Firestore
    """,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Include routers
app.include_router(
    webhook.router,
    prefix="/api/v1/webhook",
    tags=["Webhook"]
)

app.include_router(
    github_app.router,
    prefix="/api/v1/github-app",
    tags=["GitHub App"]
)

app.include_router(
    reviews.router,
    prefix="/api/v1/reviews",
    tags=["Reviews"]
)


def run_server():
    """
    Run the API server.

    This function is used as an entry point for the CLI command.
    """
    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
    )


if __name__ == "__main__":
    run_server()
