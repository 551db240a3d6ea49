import os
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.route import router
from app.lib.error_message import translate_integrity_error, translate_validation_error
from app.lib.text import isoformat_utc
from app.middleware.tenant import get_tenant_id, tenant_context_middleware
from app.model.base import utc_now

logger = logging.getLogger(__name__)

# Carrega variáveis de ambiente do .env
project_root = Path(__file__).resolve().parent.parent
load_dotenv(project_root / ".env")
load_dotenv(".env")

app = FastAPI(
    title="SmartFlux ERP API",
    description="API de gestão para comércio e serviços (PDV, estoque, OS, notas e financeiro)",
    version="1.0.0"
)

# Pode ser configurado via variável de ambiente CORS_ORIGINS (separado por vírgula)
cors_origins_env = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
cors_origins = [origin.strip() for origin in cors_origins_env.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _tenant_context(request: Request, call_next):
    return await tenant_context_middleware(request, call_next)


app.include_router(router, prefix="/api")


def _error_payload(
    request: Request,
    *,
    status_code: int,
    message: str,
    errors: list[dict[str, str]] | None = None,
) -> dict:
    payload: dict = {
        "status_code": status_code,
        "timestamp": isoformat_utc(utc_now()),
        "path": request.url.path,
        "method": request.method,
        "message": message,
    }
    if errors:
        payload["errors"] = errors
    return payload


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: list[dict[str, str]] | None = None,
    exc: BaseException | None = None,
) -> JSONResponse:
    if status_code >= 500:
        # Um único registro por erro, com stacktrace quando houver exceção
        logger.error(
            f"[{request.method} {request.url.path}] tenant={get_tenant_id(request)} {status_code}: {message}",
            exc_info=exc,
        )
    else:
        logger.warning(f"[{request.method} {request.url.path}] tenant={get_tenant_id(request)} {status_code}: {message}")
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(request, status_code=status_code, message=message, errors=errors),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Falha na requisição"
    response = _error_response(request, exc.status_code, message, exc=exc if exc.status_code >= 500 else None)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [translate_validation_error(e) for e in exc.errors()]
    return _error_response(request, 400, "Erro de validação", errors)


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    status_code, message, errors = translate_integrity_error(exc)
    return _error_response(request, status_code, message, errors)


@app.exception_handler(NoResultFound)
async def not_found_exception_handler(request: Request, exc: NoResultFound):
    return _error_response(request, 404, "Registro não encontrado.")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Stacktrace só no log; o cliente recebe mensagem genérica
    return _error_response(request, 500, "Erro interno do servidor", exc=exc)
