from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from ..database import get_db, Invoice
from ..auth import get_current_user
from ..services.stats import inventory_counts, period_stats, month_bounds, utc_today

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(get_current_user)]
)

@router.get("/stats")
async def get_dashboard_stats(db: Session = Depends(get_db)):
    """
    Statistiques du tableau de bord: inventaire, ventes et achats du mois
    courant, dix dernières factures
    """
    start, end = month_bounds(utc_today())

    recent = (
        db.query(Invoice)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .limit(10)
        .all()
    )
    recent_activity = [
        {
            "id": inv.id,
            "type": inv.type,
            "total": inv.total,
            "createdBy": inv.created_by,
            "created_at": inv.created_at,
            "description": f"{'Vente' if inv.type == 'sale' else 'Achat'} #{inv.id}",
        }
        for inv in recent
    ]

    return {
        "generalStats": inventory_counts(db),
        # Clé historique du frontend: les valeurs portent sur le mois courant
        "todayStats": period_stats(db, start, end),
        "recentActivity": recent_activity,
    }
