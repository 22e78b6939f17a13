from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from supabase import Client

from cardsync.catalog import load_catalog
from cardsync.config import Settings
from cardsync.models.api import (
    ConfirmMappingRequest,
    MappingResponse,
    SetListResponse,
    SetSummary,
    SyncRequest,
    SyncStartResponse,
    SyncStatusResponse,
)
from cardsync.overrides import OverrideStore
from cardsync.reconcile import run_sync
from cardsync.utils.errors import CatalogError
from cardsync.utils.logger import api_logger, log_api_request
from cardsync.utils.safe_handler import safe_handler
from cardsync.utils.supabase import get_supabase_client

router = APIRouter()


class SyncRunner:
    """Tracks the single background sync this process may run at a time."""

    def __init__(self):
        self.running = False
        self.last_result: Optional[dict] = None
        self.last_error: Optional[str] = None

    async def run(self, settings: Settings, client: Client, request: SyncRequest):
        self.running = True
        try:
            stats = await run_sync(
                settings,
                set_filter=request.set_id,
                card_filter=request.card,
                debug=request.debug,
                db_aliases=request.db_aliases,
                fetch_last_sales=not request.skip_last_sales,
                client=client,
            )
            self.last_result = stats.to_dict()
            self.last_error = None
        except Exception as e:
            api_logger.exception(f"Background sync failed: {e}")
            self.last_error = str(e)
        finally:
            self.running = False


sync_runner = SyncRunner()


# Dependency injection
def get_settings() -> Settings:
    return Settings.from_env()


def get_client() -> Client:
    return get_supabase_client()


def get_sync_runner() -> SyncRunner:
    return sync_runner


# ===============================================================
# SETS
# ===============================================================


@router.get("/sets", summary="List catalog sets", response_model=SetListResponse)
@safe_handler()
async def list_sets(settings: Settings = Depends(get_settings)):
    log_api_request(api_logger, "GET", "/sets")
    try:
        catalog = load_catalog(settings.catalog_path)
    except CatalogError as e:
        raise HTTPException(status_code=503, detail=str(e))

    config = settings.sync_config()
    sets = [
        SetSummary(
            id=card_set.id,
            name=card_set.name,
            card_count=len(card_set.cards),
            aliases=config.aliases_for(card_set.id),
        )
        for card_set in catalog.sets
    ]
    return SetListResponse(sets=sets, total_cards=catalog.card_count)


# ===============================================================
# SYNC
# ===============================================================


@router.post("/sync", summary="Start a background price sync", response_model=SyncStartResponse)
@safe_handler()
async def start_sync(
    background_tasks: BackgroundTasks,
    body: Optional[SyncRequest] = None,
    settings: Settings = Depends(get_settings),
    client: Client = Depends(get_client),
    runner: SyncRunner = Depends(get_sync_runner),
):
    request = body or SyncRequest()
    log_api_request(api_logger, "POST", "/sync", request.model_dump(exclude_none=True))

    if runner.running:
        raise HTTPException(status_code=409, detail="A sync is already running")

    runner.running = True
    background_tasks.add_task(runner.run, settings, client, request)
    scope = request.set_id or "all sets"
    return SyncStartResponse(status="started", message=f"Price sync started for {scope}")


@router.get("/sync/status", summary="State of the background sync", response_model=SyncStatusResponse)
@safe_handler()
async def sync_status(runner: SyncRunner = Depends(get_sync_runner)):
    return SyncStatusResponse(
        running=runner.running,
        last_result=runner.last_result,
        last_error=runner.last_error,
    )


# ===============================================================
# MAPPINGS
# ===============================================================


def _reject_while_running(runner: SyncRunner):
    if runner.running:
        raise HTTPException(status_code=409, detail="A sync is running, retry once it has finished")


@router.put(
    "/mappings/{card_id}",
    summary="Confirm a card -> product mapping",
    response_model=MappingResponse,
)
@safe_handler()
async def confirm_mapping(
    card_id: str,
    body: ConfirmMappingRequest,
    client: Client = Depends(get_client),
    runner: SyncRunner = Depends(get_sync_runner),
):
    log_api_request(api_logger, "PUT", f"/mappings/{card_id}", body.model_dump(exclude_none=True))
    _reject_while_running(runner)
    row = OverrideStore(client).confirm(card_id, body.product_id, body.mapped_by)
    return MappingResponse(
        card_id=card_id,
        tcgplayer_product_id=row.get("tcgplayer_product_id", body.product_id),
        manually_mapped=True,
        mapped_by=row.get("mapped_by", body.mapped_by),
    )


@router.delete("/mappings/{card_id}", summary="Revert a card to automatic mapping")
@safe_handler()
async def revert_mapping(
    card_id: str,
    client: Client = Depends(get_client),
    runner: SyncRunner = Depends(get_sync_runner),
):
    log_api_request(api_logger, "DELETE", f"/mappings/{card_id}")
    _reject_while_running(runner)
    if not OverrideStore(client).revert(card_id):
        raise HTTPException(status_code=404, detail=f"No mapping stored for {card_id}")
    return {"card_id": card_id, "reverted": True}
