from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import settings
from ..scp.licensing import SCP_CONTENT_LICENSE, build_dataset_attribution
from ..scp.repository import ScpRepository
from .dependencies import get_repository
from .models import AboutResponse

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok", "data_api": settings.data_api_origin}


@router.get("/about", response_model=AboutResponse)
def about(repo: Annotated[ScpRepository, Depends(get_repository)]) -> AboutResponse:
    return AboutResponse(
        name="scp-mcp-server",
        license=dict(SCP_CONTENT_LICENSE),
        attribution=build_dataset_attribution(),
        disclaimer=(
            "Unofficial tool server. SCP Wiki content is CC BY-SA 3.0; you must "
            "comply with attribution and share-alike."
        ),
        index=repo.stats(),
    )
