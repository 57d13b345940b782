from fastapi import APIRouter, Depends

from processor.transform import Processor
from routers.dependencies import get_processor
from schemas import HealthResponse

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health(processor: Processor = Depends(get_processor)):
    tools = processor.codec.available()
    return HealthResponse(
        status="ok" if all(tools.values()) else "degraded",
        codec=processor.codec.name,
        tools=tools,
        version=VERSION,
    )
