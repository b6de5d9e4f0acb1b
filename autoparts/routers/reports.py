from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..database import get_db, Invoice, Report, Event
from ..schemas import ReportCreate, EventCreate
from ..auth import get_current_user
from ..middleware import server_error
from ..services.stats import (
    inventory_counts,
    invoice_totals,
    period_stats,
    monthly_totals,
    day_bounds,
    utc_today,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/reports",
    tags=["reports"],
    dependencies=[Depends(get_current_user)]
)
events_router = APIRouter(
    prefix="/api/events",
    tags=["events"],
    dependencies=[Depends(get_current_user)]
)


def report_to_dict(report: Report) -> dict:
    return {
        "id": report.id,
        "name": report.name,
        "type": report.type,
        "period_start": report.period_start,
        "period_end": report.period_end,
        "generated_at": report.generated_at,
        "status": report.status,
        "size": report.size,
        "creator": report.creator,
    }


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "start": event.start,
        "end": event.end,
        "allDay": bool(event.all_day),
        "created_at": event.created_at,
    }


@router.get("/")
async def list_reports(db: Session = Depends(get_db)):
    reports = db.query(Report).order_by(Report.generated_at.desc(), Report.id.desc()).all()
    return [report_to_dict(r) for r in reports]


@router.post("/", status_code=201)
async def create_report(data: ReportCreate, db: Session = Depends(get_db)):
    """Enregistrer une demande de rapport (statut initial: processing)"""
    if not data.name.strip() or not data.type.strip():
        raise HTTPException(status_code=400, detail="Nom et type requis")
    try:
        report = Report(
            name=data.name,
            type=data.type,
            period_start=data.period_start,
            period_end=data.period_end,
            status="processing",
            creator=data.creator or "unknown",
        )
        db.add(report)
        db.commit()
        db.refresh(report)
        return report_to_dict(report)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de l'enregistrement du rapport: {e}")
        raise server_error(e)


@router.get("/stats")
async def report_stats(db: Session = Depends(get_db)):
    """Agrégats du jour et depuis l'ouverture"""
    start, end = day_bounds(utc_today())
    revenue, _ = invoice_totals(db, "sale")
    expenses, _ = invoice_totals(db, "purchase")
    counts = inventory_counts(db)

    return {
        "todayStats": period_stats(db, start, end),
        "generalStats": {
            "totalRevenue": revenue,
            "totalExpenses": expenses,
            "netProfit": revenue - expenses,
            "totalProducts": counts["totalProducts"],
            "lowStockCount": counts["lowStockCount"],
            "totalCustomers": counts["totalCustomers"],
            "totalSuppliers": counts["totalSuppliers"],
        },
    }


@router.get("/today_transactions")
async def today_transactions(db: Session = Depends(get_db)):
    """Factures du jour avec le nom du client (vente) ou du fournisseur (achat)"""
    start, end = day_bounds(utc_today())
    invoices = (
        db.query(Invoice)
        .filter(Invoice.created_at >= start, Invoice.created_at < end)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )
    result = []
    for inv in invoices:
        if inv.type == "sale":
            entity = inv.client.name if inv.client else inv.client_name
        else:
            entity = inv.supplier.name if inv.supplier else None
        result.append({
            "id": inv.id,
            "type": inv.type,
            "total": inv.total,
            "amount_paid": inv.amount_paid,
            "status": inv.status,
            "created_at": inv.created_at,
            "entityName": entity,
        })
    return result


@router.get("/monthly")
async def monthly_report(
    year: Optional[int] = Query(None, description="Limiter à une année"),
    db: Session = Depends(get_db),
):
    return monthly_totals(db, year)


@events_router.get("/")
async def list_events(db: Session = Depends(get_db)):
    events = db.query(Event).order_by(Event.start.asc()).all()
    return [event_to_dict(e) for e in events]


@events_router.post("/", status_code=201)
async def create_event(data: EventCreate, db: Session = Depends(get_db)):
    if not data.title.strip() or not data.start or not data.end:
        raise HTTPException(status_code=400, detail="Titre, début et fin requis")
    event = Event(title=data.title, start=data.start, end=data.end, all_day=data.all_day)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event_to_dict(event)


@events_router.delete("/{event_id}")
async def delete_event(event_id: int, db: Session = Depends(get_db)):
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Événement introuvable")
    db.delete(event)
    db.commit()
    return {"success": True}
