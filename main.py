import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from aggregation import CategoryTotal, Summary, TrendPoint
from cache import AggregateCache
from config import get_settings
from credentials import token_from_headers, verify_token
from csv_utils import export_entries
from database import SessionLocal
from errors import (
    EntryNotFound,
    EntryValidationError,
    InvalidCredential,
    InvalidQuery,
    StoreUnavailable,
)
from models import CATEGORIES, Entry, EntryAudit, EntryKind
from periods import parse_date_range, parse_granularity
from scheduler import SchedulerManager
from schemas import EntryIn, EntryPatch
from services import EntryService
from visibility import EntryFilters

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Expense Tracker API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "x-auth-token"],
)
app.state.aggregate_cache = AggregateCache(ttl_seconds=settings.cache_ttl_secs)

scheduler_manager = SchedulerManager(app.state.aggregate_cache)


@app.on_event("startup")
def startup_event():
    if not settings.auth_enabled:
        logger.warning(
            "Authentication disabled: running in open mode, all entries are "
            "visible to every caller"
        )
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(StoreUnavailable)
def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable"},
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cache(request: Request) -> AggregateCache:
    return request.app.state.aggregate_cache


def get_owner_id(request: Request) -> Optional[str]:
    if not settings.auth_enabled:
        return None
    token = token_from_headers(
        request.headers.get("authorization"), request.headers.get("x-auth-token")
    )
    if token is None:
        raise HTTPException(
            status_code=401, detail="No authentication token provided"
        )
    try:
        return verify_token(token)
    except InvalidCredential as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def get_entry_service(
    db: Session = Depends(get_db),
    cache: AggregateCache = Depends(get_cache),
    owner_id: Optional[str] = Depends(get_owner_id),
) -> EntryService:
    return EntryService(db, cache, owner_id)


def cents_to_units(cents: int) -> float:
    return cents / 100


def serialize_audit(audit: EntryAudit) -> dict[str, object]:
    return {
        "action": audit.action.value,
        "changes": audit.changes,
        "timestamp": audit.timestamp.isoformat(),
    }


def serialize_entry(entry: Entry) -> dict[str, object]:
    return {
        "id": entry.id,
        "type": entry.kind.value,
        "amount": cents_to_units(entry.amount_cents),
        "amount_cents": entry.amount_cents,
        "category": entry.category,
        "note": entry.note,
        "date": entry.occurred_at.isoformat(),
        "isDeleted": entry.is_deleted,
        "createdAt": entry.created_at.isoformat(),
        "updatedAt": entry.updated_at.isoformat(),
        "audits": [serialize_audit(a) for a in entry.audits],
    }


def serialize_summary(summary: Summary) -> dict[str, float]:
    return {
        "income": cents_to_units(summary.income_cents),
        "expense": cents_to_units(summary.expense_cents),
        "balance": cents_to_units(summary.balance_cents),
    }


def serialize_breakdown(rows: list[CategoryTotal]) -> list[dict[str, object]]:
    return [
        {"category": row.category, "total": cents_to_units(row.total_cents)}
        for row in rows
    ]


def serialize_trends(points: list[TrendPoint]) -> list[dict[str, object]]:
    return [
        {
            "period": point.period_label,
            "income": cents_to_units(point.income_cents),
            "expense": cents_to_units(point.expense_cents),
        }
        for point in points
    ]


def validation_exception(exc: EntryValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "message": "Validation failed",
            "errors": [v.as_dict() for v in exc.violations],
        },
    )


def filters_from_request(request: Request) -> EntryFilters:
    type_param = request.query_params.get("type")
    category = request.query_params.get("category")
    kind = None
    if type_param:
        try:
            kind = EntryKind(type_param)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail="Type must be either 'income' or 'expense'"
            ) from exc
    if category and category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")
    try:
        date_range = parse_date_range(
            request.query_params.get("startdate"), request.query_params.get("enddate")
        )
    except InvalidQuery as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return EntryFilters(
        kind=kind,
        category=category or None,
        start=date_range.start,
        end=date_range.end,
    )


def pagination_from_request(request: Request) -> tuple[int, int]:
    try:
        page = int(request.query_params.get("page", "1"))
        limit = int(request.query_params.get("limit", str(settings.page_size)))
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Page and limit must be integers"
        ) from exc
    if page < 1 or limit < 1:
        raise HTTPException(
            status_code=400, detail="Page and limit must be 1 or greater"
        )
    return page, min(limit, settings.max_page_size)


@app.get("/api/health")
def api_health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except DBAPIError as exc:
        logger.exception("health_check_failed")
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return {
        "success": True,
        "dbState": "connected",
        "authEnabled": settings.auth_enabled,
    }


@app.get("/api/auth/me")
def api_me(owner_id: Optional[str] = Depends(get_owner_id)):
    return {"ownerId": owner_id, "scoped": owner_id is not None}


@app.post("/api/entries", status_code=201)
def api_create_entry(
    payload: EntryIn, service: EntryService = Depends(get_entry_service)
):
    try:
        entry = service.create_entry(payload)
    except EntryValidationError as exc:
        raise validation_exception(exc) from exc
    return serialize_entry(entry)


@app.get("/api/entries")
def api_list_entries(
    request: Request, service: EntryService = Depends(get_entry_service)
):
    filters = filters_from_request(request)
    page, limit = pagination_from_request(request)
    result = service.list_entries(filters, page=page, page_size=limit)
    return {
        "entries": [serialize_entry(e) for e in result.entries],
        "total": result.total,
        "page": result.page,
        "limit": result.page_size,
        "totalPages": result.total_pages,
    }


@app.get("/api/entries/summary")
def api_summary(service: EntryService = Depends(get_entry_service)):
    return serialize_summary(service.get_summary())


@app.get("/api/entries/category-breakdown")
def api_category_breakdown(
    request: Request, service: EntryService = Depends(get_entry_service)
):
    try:
        rows = service.get_breakdown(request.query_params.get("type", "expense"))
    except InvalidQuery as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return serialize_breakdown(rows)


@app.get("/api/entries/trends")
def api_trends(request: Request, service: EntryService = Depends(get_entry_service)):
    try:
        date_range = parse_date_range(
            request.query_params.get("startdate"), request.query_params.get("enddate")
        )
        granularity = parse_granularity(request.query_params.get("period"))
    except InvalidQuery as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    points = service.get_trends(date_range.start, date_range.end, granularity)
    return serialize_trends(points)


@app.get("/api/entries/export.csv")
def api_export_entries(
    request: Request, service: EntryService = Depends(get_entry_service)
):
    filters = filters_from_request(request)
    csv_content = export_entries(service.export_entries(filters))
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="entries.csv"'},
    )


@app.get("/api/entries/{entry_id}")
def api_get_entry(entry_id: int, service: EntryService = Depends(get_entry_service)):
    try:
        entry = service.get_entry(entry_id)
    except EntryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return serialize_entry(entry)


@app.get("/api/entries/{entry_id}/audits")
def api_entry_audits(
    entry_id: int, service: EntryService = Depends(get_entry_service)
):
    try:
        audits = service.entry_audits(entry_id)
    except EntryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [serialize_audit(a) for a in audits]


@app.put("/api/entries/{entry_id}")
def api_update_entry(
    entry_id: int,
    payload: EntryPatch,
    service: EntryService = Depends(get_entry_service),
):
    try:
        entry = service.update_entry(entry_id, payload)
    except EntryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EntryValidationError as exc:
        raise validation_exception(exc) from exc
    return serialize_entry(entry)


@app.delete("/api/entries/{entry_id}")
def api_delete_entry(
    entry_id: int, service: EntryService = Depends(get_entry_service)
):
    try:
        service.delete_entry(entry_id)
    except EntryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True}
