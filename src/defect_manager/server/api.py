"""Defect collection and bulletin endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from defect_manager.defect.backend import CveBackendError
from defect_manager.defect.repository import RepositoryError
from defect_manager.defect.service import CollectDefectsDTO, DefectService
from defect_manager.server.context import AppContext


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/defect", tags=["defect"])

PROCESSING_MESSAGE = "Processing: Data is being prepared, please wait patiently\n"


class BulletinRequest(BaseModel):
    """Request body for bulletin generation."""

    model_config = ConfigDict(populate_by_name=True)

    issue_number: list[str] = Field(alias="IssueNumber", min_length=1)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


@router.get("", response_model=list[CollectDefectsDTO])
def collect_defects(version: str, context: AppContext = Depends(get_context)) -> list[CollectDefectsDTO]:
    """Defects fixed on ``version`` that have not been published yet."""
    logger.info(f"Collect defects of {version}")

    try:
        return context.service.collect_defects(version)
    except (RepositoryError, CveBackendError) as e:
        logger.error(f"Collect defects of {version} failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/bulletin", status_code=201, response_class=PlainTextResponse)
async def generate_bulletin(
    request: BulletinRequest,
    background_tasks: BackgroundTasks,
    context: AppContext = Depends(get_context),
) -> str:
    """Schedule bulletin generation for the given issue numbers."""
    background_tasks.add_task(run_bulletin_task, context.service, request.issue_number)
    return PROCESSING_MESSAGE


def run_bulletin_task(service: DefectService, numbers: list[str]) -> None:
    """Generate bulletins, logging instead of raising."""
    logger.info(f"generate bulletin processing of {numbers}")
    try:
        files = service.generate_bulletins(numbers)
    except Exception as e:
        logger.exception(f"generate bulletin of {numbers} err: {e}")
        return

    logger.info(f"generate bulletin success of {numbers}: {files}")
