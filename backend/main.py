import logging
import secrets
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from omegaconf import DictConfig

from api_schemas import *
from chirpy import auth_jwt
from chirpy.database import DB
from chirpy.document import Chirp, User
from chirpy.errors import Conflict, CorruptStore, Forbidden, HashingFailure, IOFailure, NotFound
from chirpy.profanity import clean_body
from config import load_config

logger = logging.getLogger(__name__)

router = APIRouter()

_STORE_ERROR_STATUS = {
    NotFound: 404,
    Conflict: 409,
    Forbidden: 403,
    CorruptStore: 500,
    IOFailure: 500,
    HashingFailure: 500,
}


def get_config(request: Request) -> DictConfig:
    return request.app.state.config


def get_db(request: Request) -> DB:
    return request.app.state.db


def _strip_scheme(authorization: str, scheme: str) -> str:
    prefix = f"{scheme} "
    return authorization[len(prefix):] if authorization.startswith(prefix) else authorization


def current_user_id(
    authorization: str = Header(""),
    config: DictConfig = Depends(get_config),
) -> int:
    """Resolve the user id from a Bearer access token."""
    token = _strip_scheme(authorization, "Bearer")
    user_id = auth_jwt.verify_token(
        token, auth_jwt.ACCESS_ISSUER, config.auth.jwt_secret, config.auth.jwt_algorithm
    )
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


def require_polka_key(
    authorization: str = Header(""),
    config: DictConfig = Depends(get_config),
):
    """Reject webhook calls without the configured ``ApiKey``."""
    api_key = str(config.polka.api_key or "")
    supplied = _strip_scheme(authorization, "ApiKey")
    if not api_key or not secrets.compare_digest(supplied.encode("utf-8"), api_key.encode("utf-8")):
        logger.warning("Rejected webhook call with an invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")


def _refresh_token_user(authorization: str, config: DictConfig):
    token = _strip_scheme(authorization, "Bearer")
    user_id = auth_jwt.verify_token(
        token, auth_jwt.REFRESH_ISSUER, config.auth.jwt_secret, config.auth.jwt_algorithm
    )
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    return token, user_id


def _access_token(user_id: int, config: DictConfig, expires_in_seconds: Optional[int] = None) -> str:
    ttl = int(config.auth.access_token_ttl_seconds)
    if expires_in_seconds:
        ttl = min(expires_in_seconds, ttl)
    return auth_jwt.create_token(
        user_id, auth_jwt.ACCESS_ISSUER, ttl, config.auth.jwt_secret, config.auth.jwt_algorithm
    )


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, is_chirpy_red=user.is_upgraded)


def _chirp_response(chirp: Chirp, config: DictConfig) -> ChirpResponse:
    return ChirpResponse(
        id=chirp.id,
        body=clean_body(chirp.body, config.chirps.bad_words),
        author_id=chirp.author_id,
    )


def _check_length(body: str, config: DictConfig):
    if len(body) > config.chirps.max_length:
        raise HTTPException(status_code=400, detail="Chirp is too long")


# --------------- health and metrics ---------------

@router.get("/api/healthz", response_class=PlainTextResponse)
async def healthz():
    return "OK"


@router.get("/admin/metrics", response_class=HTMLResponse)
async def metrics(request: Request):
    hits = request.app.state.fileserver_hits
    return f"""<html>
<body>
    <h1>Welcome, Chirpy Admin</h1>
    <p>Chirpy has been visited {hits} times!</p>
</body>
</html>"""


@router.post("/api/reset")
async def reset_metrics(request: Request):
    request.app.state.fileserver_hits = 0
    return {"ok": True}


@router.post("/api/validate_chirp")
async def validate_chirp(request: ChirpRequest, config: DictConfig = Depends(get_config)):
    _check_length(request.body, config)
    return {"cleaned_body": clean_body(request.body, config.chirps.bad_words)}


# --------------- users and tokens ---------------

@router.post("/api/users", status_code=201, response_model=UserResponse)
def create_user(request: UserRequest, db: DB = Depends(get_db)):
    user = db.create_user(request.email, request.password)
    return _user_response(user)


@router.put("/api/users", response_model=UserResponse)
def update_user(
    request: UserUpdateRequest,
    user_id: int = Depends(current_user_id),
    db: DB = Depends(get_db),
):
    user = db.update_user(user_id, request.email, request.password)
    return _user_response(user)


@router.post("/api/login", response_model=LoginResponse)
def login(request: LoginRequest, db: DB = Depends(get_db), config: DictConfig = Depends(get_config)):
    user = db.verify_password(request.email, request.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    refresh_token = auth_jwt.create_token(
        user.id,
        auth_jwt.REFRESH_ISSUER,
        int(config.auth.refresh_token_ttl_seconds),
        config.auth.jwt_secret,
        config.auth.jwt_algorithm,
    )
    return LoginResponse(
        id=user.id,
        email=user.email,
        is_chirpy_red=user.is_upgraded,
        token=_access_token(user.id, config, request.expires_in_seconds),
        refresh_token=refresh_token,
    )


@router.post("/api/refresh")
def refresh(
    authorization: str = Header(""),
    db: DB = Depends(get_db),
    config: DictConfig = Depends(get_config),
):
    token, user_id = _refresh_token_user(authorization, config)
    if db.is_revoked(token):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")
    return {"token": _access_token(user_id, config)}


@router.post("/api/revoke")
def revoke(
    authorization: str = Header(""),
    db: DB = Depends(get_db),
    config: DictConfig = Depends(get_config),
):
    token, _ = _refresh_token_user(authorization, config)
    db.record_revocation(token)
    return Response(status_code=200)


# --------------- chirps ---------------

@router.post("/api/chirps", status_code=201, response_model=ChirpResponse)
def create_chirp(
    request: ChirpRequest,
    user_id: int = Depends(current_user_id),
    db: DB = Depends(get_db),
    config: DictConfig = Depends(get_config),
):
    _check_length(request.body, config)
    chirp = db.create_chirp(request.body, user_id)
    return _chirp_response(chirp, config)


@router.get("/api/chirps", response_model=List[ChirpResponse])
def list_chirps(
    author_id: Optional[int] = None,
    sort: str = Query("asc", pattern="^(asc|desc)$"),
    db: DB = Depends(get_db),
    config: DictConfig = Depends(get_config),
):
    chirps = sorted(db.list_chirps(author_id), key=lambda c: c.id, reverse=(sort == "desc"))
    return [_chirp_response(c, config) for c in chirps]


@router.get("/api/chirps/{chirp_id}", response_model=ChirpResponse)
def get_chirp(chirp_id: int, db: DB = Depends(get_db), config: DictConfig = Depends(get_config)):
    return _chirp_response(db.get_chirp(chirp_id), config)


@router.delete("/api/chirps/{chirp_id}", status_code=204)
def delete_chirp(chirp_id: int, user_id: int = Depends(current_user_id), db: DB = Depends(get_db)):
    db.delete_chirp(chirp_id, user_id)
    return Response(status_code=204)


# --------------- webhooks ---------------

@router.post("/api/polka/webhooks", status_code=204, dependencies=[Depends(require_polka_key)])
def polka_webhook(request: WebhookRequest, db: DB = Depends(get_db)):
    if request.event == "user.upgraded":
        db.upgrade_user(request.data.user_id)
    return Response(status_code=204)


def _store_error_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        if status_code > 499:
            logger.error(f"Responding with {status_code} error: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(app_config: DictConfig) -> FastAPI:
    """Build the API around an explicit configuration object."""
    app = FastAPI(title="Chirpy")
    app.state.config = app_config
    app.state.db = DB(app_config.database.path, bcrypt_rounds=int(app_config.auth.bcrypt_rounds))
    app.state.fileserver_hits = 0

    @app.middleware("http")
    async def count_fileserver_hits(request: Request, call_next):
        if request.url.path.startswith("/app"):
            request.app.state.fileserver_hits += 1
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for exc_type, status_code in _STORE_ERROR_STATUS.items():
        app.add_exception_handler(exc_type, _store_error_handler(status_code))

    app.include_router(router)

    static_dir = Path(str(app_config.static.directory))
    if static_dir.is_dir():
        app.mount("/app", StaticFiles(directory=static_dir, html=True), name="app")
    else:
        logger.info(f"Static directory {static_dir} not found, /app is not served")
    return app


if __name__ == "__main__":
    app_config = load_config(config_name="main")
    log_level = str(app_config.get("log_level", "info")).lower()
    logging.basicConfig(level=log_level.upper())
    host = app_config.get("server", {}).get("host", "127.0.0.1")
    port = int(app_config.get("server", {}).get("port", 8080))
    uvicorn.run(create_app(app_config), host=host, port=port, log_level=log_level)
