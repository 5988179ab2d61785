"""Structured sales order query endpoint."""
from fastapi import APIRouter, HTTPException, Request

from erp_core import query_engine
from erp_core.config import config
from erp_core.exceptions import ValidationError
from erp_core.models import QueryDescriptor
from erp_core.observability import get_logger
from erp_web.schemas import QueryRequest, QueryResponse
from ._deps import limiter, get_store

router = APIRouter()
logger = get_logger(__name__)


@router.post("/query", response_model=QueryResponse)
@limiter.limit(f"{config.web.rate_limit_per_minute}/minute")
async def run_query(request: Request, query: QueryRequest):
    """Answer a resolved query against the current snapshot."""
    try:
        descriptor = QueryDescriptor.from_dict(query.to_descriptor_input())
        records = get_store(request).snapshot()
        result = query_engine.answer(descriptor, records)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"snapshot_records": len(records), "result": result}
