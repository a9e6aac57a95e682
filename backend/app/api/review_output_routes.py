"""Review output API routes — generate, load, unit weight, filter."""
import logging
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.db import get_db
from app.api.deps import get_current_subject, get_session_maker
from app.models.pms_schema import (
    FilterResponse,
    GenerateRequest,
    GenerateResponse,
    LoadRequest,
    LoadResponse,
    ReviewOutputOut,
    UpdateUnitWeightRequest,
    UpdateUnitWeightResponse,
)
from app.services.catalog_weight_resolver import InvalidWeightError, ItemNotFoundError
from app.services.perf_monitor import tracker
from app.services.review_output_service import (
    NoSpecsError,
    expand_spec,
    filter_cached_items,
    load_and_cache,
    update_unit_weight,
)
from app.services.spec_repository import SpecNotFoundError

router = APIRouter(prefix="/api/review-output", tags=["Review Output"])
logger = logging.getLogger("pms-api.review-output")


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    session_factory: async_sessionmaker = Depends(get_session_maker),
    subject: str = Depends(get_current_subject),
):
    """Expand one spec into items. Read-only; nothing is cached."""
    try:
        result = await expand_spec(
            session_factory, body.spec_id, body.project_id, include_weight=body.include_weight
        )
    except SpecNotFoundError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    except Exception as e:
        tracker.record_error("generate")
        logger.error(f"Generate failed for spec {body.spec_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while processing data")

    if not result.success:
        return JSONResponse(status_code=400, content={"success": False, "error": result.error})
    return GenerateResponse(
        success=True,
        message=result.message,
        data=[item.to_dict() for item in result.data],
        diagnostics=[asdict(d) for d in result.diagnostics],
    )


@router.post("/load", response_model=LoadResponse)
async def load(
    body: LoadRequest,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_maker),
    subject: str = Depends(get_current_subject),
):
    """Expand every spec of the project and cache new item codes."""
    try:
        summary = await load_and_cache(db, body.project_id, session_factory=session_factory)
    except NoSpecsError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        tracker.record_error("load")
        logger.error(f"Load failed for project {body.project_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error loading data")

    return LoadResponse(
        success=True,
        message="Data loaded and saved in review output for all specs.",
        specs=summary.specs,
        generated=summary.generated,
        inserted=summary.inserted,
    )


@router.post("/update-unit-weight", response_model=UpdateUnitWeightResponse)
async def update_weight_route(
    body: UpdateUnitWeightRequest,
    db: AsyncSession = Depends(get_db),
    subject: str = Depends(get_current_subject),
):
    try:
        row = await update_unit_weight(db, body.item_code, body.unit_weight)
    except ItemNotFoundError:
        raise HTTPException(status_code=404, detail="Item not found.")
    except InvalidWeightError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return UpdateUnitWeightResponse(
        success=True,
        message="Unit Weight updated successfully.",
        data=ReviewOutputOut.model_validate(row),
    )


@router.get("/filter", response_model=FilterResponse)
async def filter_items(
    comp_type: Optional[str] = Query(None),
    size1: Optional[str] = Query(None),
    size2: Optional[str] = Query(None),
    rating: Optional[str] = Query(None),
    project_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    subject: str = Depends(get_current_subject),
):
    """Cached items matching every supplied filter; empty list when none match."""
    rows = await filter_cached_items(
        db, comp_type=comp_type, size1=size1, size2=size2, rating=rating, project_id=project_id
    )
    return FilterResponse(
        success=True,
        total=len(rows),
        data=[ReviewOutputOut.model_validate(r) for r in rows],
    )
