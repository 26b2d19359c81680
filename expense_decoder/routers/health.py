"""
Health Check Router
Liveness plus a status check of the storage tables and the AI gateway configuration
"""
from fastapi import APIRouter
from datetime import datetime, timezone
import logging

from botocore.exceptions import BotoCoreError, ClientError

from expense_decoder.core.config import settings
from expense_decoder.db import dynamo

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def _table_status(table, name: str) -> dict:
    try:
        table.scan(Limit=1)
        return {"name": name, "status": "accessible", "region": settings.DYNAMO_REGION}
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        logger.error(f"DynamoDB check failed for {name}: {str(e)}")
        return {"name": name, "status": "error", "error": f"{error_code}: {str(e)}"}
    except BotoCoreError as e:
        logger.error(f"DynamoDB check failed for {name}: {str(e)}")
        return {"name": name, "status": "error", "error": str(e)}


@router.get("/status")
def services_status():
    """
    Check the DynamoDB tables and whether the AI gateway has credentials.
    """
    tables = {
        "expenses": _table_status(dynamo.expenses_table, settings.DYNAMO_TABLE_EXPENSES),
        "insights": _table_status(dynamo.insights_table, settings.DYNAMO_TABLE_INSIGHTS),
    }
    dynamodb_connected = all(table["status"] == "accessible" for table in tables.values())
    llm_configured = bool(settings.LLM_API_KEY)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "dynamodb": {"connected": dynamodb_connected, "tables": tables},
            "ai_gateway": {"configured": llm_configured, "model": settings.LLM_MODEL},
        },
        "overall_status": "healthy" if dynamodb_connected and llm_configured else "degraded",
    }
