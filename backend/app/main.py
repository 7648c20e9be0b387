"""
Fatturazione Pro - FastAPI Backend
Main application entry point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
import logging
import traceback

from app.api.v1.endpoints import fatturazione
from app.core.config import settings
from app.services.fatturazione.errors import (
    InvoicePipelineError,
    InvoiceValidationError,
    SerializationError,
)
from app.services.store import StoreError
from app.services.supabase_client import SupabaseNotConfigured

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _close_sql_pool(timeout: float):
    from app.core.database import get_engine, wait_for_warmup_complete

    # Attendi che il warmup finisca se è ancora in corso
    wait_for_warmup_complete(timeout=timeout)
    get_engine().dispose(close=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Con lo store Supabase le richieste passano da PostgREST: nessun pool da scaldare
    if settings.STORE_BACKEND == "sql":
        from app.core.database import warmup_pool

        warmup_pool()

    yield

    if settings.STORE_BACKEND == "sql":
        try:
            logger.info("Closing database connection pool...")
            _close_sql_pool(timeout=1.0)
            logger.info("Database connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing database connections: {e}")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Backend API for Fatturazione Pro - clienti, prodotti, fatture e FatturaPA",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression middleware - comprime risposte > 1000 bytes
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(InvoiceValidationError)
async def invoice_validation_handler(request: Request, exc: InvoiceValidationError):
    """Totali incoerenti o dati obbligatori mancanti: nulla è stato scritto"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Fattura non valida",
            "error_type": "validation_error",
            "messages": exc.messages,
        }
    )


@app.exception_handler(InvoicePipelineError)
async def invoice_pipeline_handler(request: Request, exc: InvoicePipelineError):
    """Sequenza testata/righe interrotta: i passi precedenti restano salvati"""
    logger.error(f"Invoice pipeline failed at {exc.step.value} for {exc.invoice_id}: {exc.cause}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": str(exc),
            "error_type": "pipeline_error",
            "step": exc.step.value,
            "invoice_id": exc.invoice_id,
            "retry": exc.step.retry_hint,
        }
    )


@app.exception_handler(SerializationError)
async def serialization_error_handler(request: Request, exc: SerializationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": str(exc),
            "error_type": "serialization_error",
        }
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Errore di accesso ai dati. Il servizio potrebbe essere temporaneamente non disponibile.",
            "error_type": "store_error",
            "code": exc.code,
            "error": str(exc),
        }
    )


@app.exception_handler(SupabaseNotConfigured)
async def supabase_not_configured_handler(request: Request, exc: SupabaseNotConfigured):
    logger.error(f"Supabase not configured: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": str(exc),
            "error_type": "configuration_error",
        }
    )


# Global exception handler for database connection errors
@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    """Handle database connection errors with user-friendly messages"""
    error_msg = str(exc.orig) if hasattr(exc, 'orig') else str(exc)

    # Check for DNS resolution errors (common during Supabase maintenance)
    if "could not translate host name" in error_msg or "nodename nor servname provided" in error_msg:
        logger.error(f"Database DNS resolution error: {error_msg}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Errore di connessione al database. L'hostname del database non può essere risolto. "
                         "Questo potrebbe essere dovuto a manutenzione di Supabase o al progetto pausato.",
                "error_type": "database_connection_error",
                "suggestions": [
                    "Verifica che il progetto Supabase sia attivo nella dashboard",
                    "Verifica che il DATABASE_URL nel file .env sia corretto",
                    "Assicurati di usare la connessione diretta (porta 5432), non il pooler"
                ]
            }
        )

    logger.error(f"Database operational error: {error_msg}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Errore di connessione al database. Il servizio potrebbe essere temporaneamente non disponibile.",
            "error_type": "database_error",
            "error": error_msg
        }
    )


# Global exception handler per errori 500 - logga traceback completo per debug
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Logga eccezioni non gestite e restituisce 500 con messaggio generico"""
    tb = traceback.format_exc()
    logger.error(f"Unhandled exception: {exc}\n{tb}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Errore interno del server. Contatta il supporto se il problema persiste.",
        }
    )


# Include routers
app.include_router(fatturazione.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint - versione veloce senza accesso allo store"""
    return {
        "status": "healthy",
        "service": "fatturazione-pro-api",
        "version": settings.APP_VERSION
    }


@app.get("/health/detailed")
async def health_check_detailed():
    """Detailed health check with store connectivity test"""
    from app.services.store import get_store

    try:
        get_store().count("customers")
        return {
            "status": "healthy",
            "service": "fatturazione-pro-api",
            "store": settings.STORE_BACKEND,
            "database": "connected"
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "service": "fatturazione-pro-api",
                "store": settings.STORE_BACKEND,
                "database": "disconnected",
                "error": str(e)
            }
        )


if __name__ == "__main__":
    import uvicorn
    import signal
    import sys

    def signal_handler(sig, frame):
        """Handle shutdown signals gracefully"""
        logger.info("Received shutdown signal, closing gracefully...")
        if settings.STORE_BACKEND == "sql":
            try:
                _close_sql_pool(timeout=0.5)
                logger.info("Database connections closed")
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")
        sys.exit(0)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    uvicorn.run(app, host="0.0.0.0", port=8000)
