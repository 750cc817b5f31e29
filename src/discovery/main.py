from __future__ import annotations

from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from discovery.config import Configuration
from discovery.models import RegionSelector, RestaurantRecord, SortOption
from discovery.services.controller import DiscoveryController
from discovery.services.listing import ListingClient
from discovery.services.session import ControllerRegistry


load_dotenv()

app = FastAPI(title="Restaurant Discovery")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RegionPayload(BaseModel):
    key: str
    label: str
    type: str = "city"
    short_label: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PreferencesRequest(BaseModel):
    palates: Optional[List[str]] = Field(None, description="The user's own palate preferences")
    user_id: Optional[str] = None


class FilterRequest(BaseModel):
    search_term: Optional[str] = Field(None, description="Free-text search sent upstream")
    cuisine: Optional[List[str]] = Field(None, description="Category slugs")
    palates: Optional[List[str]] = None
    price: Optional[str] = Field(None, description="Price range label, e.g. '$$'")
    rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    badge: Optional[str] = None
    sort_option: Optional[SortOption] = None
    address_keyword: Optional[str] = None
    selected_region: Optional[RegionPayload] = None


class PalateStatsPayload(BaseModel):
    avg: float
    count: int


class RestaurantPayload(BaseModel):
    id: str
    database_id: int
    name: str
    slug: str = ""
    rating: float = 0.0
    ratings_count: int = 0
    price_range: str = ""
    palates: List[str] = []
    categories: List[str] = []
    address: str = ""
    recognition_count: Optional[int] = None
    search_palate_stats: Optional[PalateStatsPayload] = None


class SnapshotResponse(BaseModel):
    results: List[RestaurantPayload]
    loading: bool
    has_more: bool
    notice: Optional[str] = None
    suggestions: List[RestaurantPayload] = []


def _record_payload(record: RestaurantRecord) -> RestaurantPayload:
    stats = record.search_palate_stats
    return RestaurantPayload(
        id=record.id,
        database_id=record.database_id,
        name=record.name,
        slug=record.slug,
        rating=record.rating,
        ratings_count=record.ratings_count,
        price_range=record.price_range,
        palates=sorted(record.palates_names),
        categories=[c.name for c in record.listing_categories],
        address=record.address,
        recognition_count=record.recognition_count,
        search_palate_stats=PalateStatsPayload(avg=stats.avg, count=stats.count) if stats else None,
    )


def _snapshot(controller: DiscoveryController) -> SnapshotResponse:
    status = controller.status
    return SnapshotResponse(
        results=[_record_payload(r) for r in controller.results],
        loading=status.loading,
        has_more=status.has_more,
        notice=status.notice,
        suggestions=[_record_payload(r) for r in controller.suggestions],
    )


_registry: Optional[ControllerRegistry] = None


def get_registry() -> ControllerRegistry:
    global _registry
    if _registry is None:
        cfg = Configuration.from_env()
        cfg.require_listing()
        logger.info("cfg: {}", cfg.log_summary())
        client = ListingClient(cfg)
        _registry = ControllerRegistry(
            lambda: DiscoveryController.from_config(cfg, client),
            ttl_sec=cfg.session_ttl_sec,
        )
    return _registry


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/sessions/{sid}", response_model=SnapshotResponse)
async def get_session(sid: str, registry: ControllerRegistry = Depends(get_registry)) -> SnapshotResponse:
    controller = registry.get_or_create(sid)
    if not controller.started:
        await controller.start()
    return _snapshot(controller)


@app.post("/sessions/{sid}/filters", response_model=SnapshotResponse)
async def update_filters(
    sid: str,
    req: FilterRequest,
    registry: ControllerRegistry = Depends(get_registry),
) -> SnapshotResponse:
    controller = registry.get_or_create(sid)
    partial = req.model_dump(exclude_unset=True)
    if "selected_region" in partial and partial["selected_region"] is not None:
        partial["selected_region"] = RegionSelector(**partial["selected_region"])
    try:
        change = await controller.update_filters(**partial)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    logger.info(
        "session {} filters changed={} refetch={}",
        sid,
        sorted(change.changed),
        change.requires_refetch,
    )
    return _snapshot(controller)


@app.post("/sessions/{sid}/preferences", response_model=SnapshotResponse)
async def set_preferences(
    sid: str,
    req: PreferencesRequest,
    registry: ControllerRegistry = Depends(get_registry),
) -> SnapshotResponse:
    controller = registry.get_or_create(sid)
    await controller.set_preferences(palates=req.palates, user_id=req.user_id)
    if not controller.started:
        await controller.start()
    logger.info("session {} preferences palates={}", sid, list(controller.user_palates))
    return _snapshot(controller)


@app.post("/sessions/{sid}/more", response_model=SnapshotResponse)
async def load_more(sid: str, registry: ControllerRegistry = Depends(get_registry)) -> SnapshotResponse:
    controller = registry.get_or_create(sid)
    if not controller.started:
        await controller.start()
    else:
        await controller.load_more()
    return _snapshot(controller)


@app.delete("/sessions/{sid}")
def reset_session(sid: str, registry: ControllerRegistry = Depends(get_registry)) -> Dict[str, bool]:
    return {"reset": registry.reset(sid)}
