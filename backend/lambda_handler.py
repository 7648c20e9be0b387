"""
Lambda Handler per Fatturazione Pro API
Adatta FastAPI per funzionare su AWS Lambda usando Mangum
"""
import os
import sys
import logging

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Lambda potrebbe non avere la directory del pacchetto in sys.path
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from mangum import Mangum  # noqa: E402
from app.main import app  # noqa: E402

# Prefisso dello stage API Gateway, rimosso prima di passare la richiesta a FastAPI
BASE_PATH = os.environ.get("LAMBDA_BASE_PATH", "/default/fatturazione-api")

handler_mangum = Mangum(app, lifespan="off")


def strip_base_path(event: dict, base_path: str = BASE_PATH) -> dict:
    """Rimuove il prefisso dello stage dal path dell'evento (API Gateway v1 e v2)"""
    original_path = (
        event.get("rawPath")
        or event.get("path")
        or event.get("requestContext", {}).get("http", {}).get("path", "")
    )
    if not base_path or not original_path.startswith(base_path):
        return event

    new_path = original_path[len(base_path):] or "/"
    if "rawPath" in event:
        event["rawPath"] = new_path
    if "path" in event:
        event["path"] = new_path
    if "requestContext" in event and "http" in event["requestContext"]:
        event["requestContext"]["http"]["path"] = new_path
    logger.info(f"Path {original_path} -> {new_path}")
    return event


def handler(event, context):
    """Handler con logging e fix del path"""
    event = strip_base_path(event)
    try:
        response = handler_mangum(event, context)
        logger.info(f"Response status: {response.get('statusCode', 'N/A')}")
        return response
    except Exception as e:
        logger.error(f"Error in handler: {str(e)}", exc_info=True)
        raise
