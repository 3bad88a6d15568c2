# Local Backend - FastAPI app the UI shell talks to
#
# Built by create_app() around one CredentialStore and one SourceSwitcher,
# both kept on app.state and handed to routes through dependencies.

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..activation import SourceSwitcher, default_sinks
from ..config import AppConfig, load_config
from ..core import (
    ActivationError,
    DecryptionError,
    EncryptionError,
    EventType,
    InvalidInputError,
    KeyswitchError,
    NotFoundError,
    StorageError,
    get_event_logger,
)
from ..vault import CredentialStore
from .security import new_session_token
from .settings_routes import router as settings_router
from .source_routes import router as source_router

logger = logging.getLogger(__name__)

# Error class -> HTTP status; first match wins, so subclasses go first
_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidInputError, 422),
    (DecryptionError, status.HTTP_409_CONFLICT),
    (EncryptionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (ActivationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


async def keyswitch_error_handler(request: Request, exc: KeyswitchError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": type(exc).__name__, "detail": str(exc)},
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    get_event_logger().log_event(
        EventType.SYSTEM_START,
        "keyswitch API server starting",
        details={"version": __version__},
    )
    yield
    # Process-local credentials do not outlive the backend
    app.state.switcher.clear_process_environment()
    get_event_logger().log_event(EventType.SYSTEM_STOP, "keyswitch API server shutting down")


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[CredentialStore] = None,
    switcher: Optional[SourceSwitcher] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Runtime settings (default: load_config())
        store: Credential store (default: at config.data_path)
        switcher: Source switcher (default: platform sinks from config)
    """
    config = config or load_config()
    store = store or CredentialStore.from_config(config)
    switcher = switcher or SourceSwitcher(
        store,
        default_sinks(config.consumer_dir, config.shell_profile_paths),
    )

    app = FastAPI(
        title="keyswitch API",
        description="Encrypted API source store and active-source switcher",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.switcher = switcher
    app.state.session_token = new_session_token()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000", "http://127.0.0.1:3000",
            f"http://localhost:{config.port}", f"http://127.0.0.1:{config.port}",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(KeyswitchError, keyswitch_error_handler)

    @app.get("/api/session")
    async def get_session():
        """
        Session token for X-Session-Token.

        Unprotected: the UI shell needs it to authenticate. It changes on
        every restart and the server binds to localhost only.
        """
        return {"session_token": app.state.session_token}

    app.include_router(source_router)
    app.include_router(settings_router)
    return app


def start_api_server(config: AppConfig, app: Optional[FastAPI] = None) -> None:
    """
    Start the API server.

    Args:
        config: Runtime settings (host, port, log level)
        app: Pre-built app (default: create_app(config))
    """
    app = app or create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
