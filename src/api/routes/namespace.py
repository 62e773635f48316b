"""FastAPI routes for namespace pool inspection."""

from fastapi import APIRouter, Depends

from src.api.dependencies import get_stack
from src.api.schemas import NamespaceStatsResponse
from src.cli.factory import AutoFlowStack

router = APIRouter(prefix="/namespace", tags=["namespace"])


@router.get("/stats", response_model=NamespaceStatsResponse)
def namespace_stats(stack: AutoFlowStack = Depends(get_stack)) -> NamespaceStatsResponse:
    """Return slot pool utilisation."""
    return NamespaceStatsResponse(**stack.allocator.stats().model_dump())
