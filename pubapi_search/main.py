# Run from project root: INDEX_PATH=data/index.json uvicorn pubapi_search.main:app --reload

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pubapi_search.agent.graph import BrowsingAgent
from pubapi_search.api.routes import router
from pubapi_search.core.config import INDEX_PATH
from pubapi_search.services.agent_service import load_runtime
from pubapi_search.services.browser import Browser

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(browser: Browser | None = None, agent: BrowsingAgent | None = None) -> FastAPI:
    """
    Build the app. With no browser given, the index at INDEX_PATH is loaded on startup;
    if INDEX_PATH is unset the app runs without an index and search returns 503.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.browser = browser
        app.state.agent = agent
        if browser is None and INDEX_PATH:
            runtime = load_runtime(INDEX_PATH)
            app.state.browser = runtime.browser
            app.state.agent = runtime.agent
        logger.info("Search engine is up (index loaded: %s)", app.state.browser is not None)
        yield

    app = FastAPI(title="Public API Search", lifespan=lifespan)
    app.include_router(router)
    app.state.browser = browser
    app.state.agent = agent
    return app


app = create_app()
