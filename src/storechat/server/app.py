"""FastAPI application factory."""

from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from storechat import __version__
from storechat.agent.loop import Orchestrator
from storechat.config.loader import ConfigError
from storechat.config.schema import StoreChatConfig
from storechat.llm.client import LLMClient
from storechat.memory.database import create_db_engine, init_db
from storechat.memory.state import CheckpointConflictError
from storechat.server.routes import create_router


def create_app(
    config: StoreChatConfig,
    engine: Engine | None = None,
    llm_factory: Callable[..., LLMClient] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: storechat configuration
        engine: Database engine; built from ``config.database`` if omitted
        llm_factory: Override for the chat model factory

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="storechat",
        description="Conversational analytics agent for WooCommerce stores",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if engine is None:
        engine = create_db_engine(config.database)
    init_db(engine)

    orchestrator = Orchestrator.from_engine(engine, config)
    if llm_factory is not None:
        orchestrator.llm_factory = llm_factory

    @app.exception_handler(ConfigError)
    async def config_error(request: Request, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(CheckpointConflictError)
    async def conflict_error(request: Request, exc: CheckpointConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    app.include_router(create_router(orchestrator, config))
    return app
