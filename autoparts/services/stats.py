from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from datetime import date, datetime, timedelta, timezone
from sqlalchemy.orm import Session
from sqlalchemy import func, extract, case

from ..database import Invoice, Product, Employee, Supplier, Customer

# Les dates created_at sont écrites par la base (CURRENT_TIMESTAMP, UTC)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def month_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime(day.year, day.month, 1)
    if day.month == 12:
        return start, datetime(day.year + 1, 1, 1)
    return start, datetime(day.year, day.month + 1, 1)


def invoice_totals(db: Session, invoice_type: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Tuple[float, int]:
    """Somme et nombre des factures d'un type, éventuellement sur [start, end)."""
    query = db.query(func.coalesce(func.sum(Invoice.total), 0), func.count(Invoice.id)).filter(Invoice.type == invoice_type)
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at < end)
    total, count = query.one()
    return float(total or 0), int(count or 0)


def inventory_counts(db: Session) -> Dict[str, int]:
    return {
        "totalProducts": db.query(func.count(Product.id)).scalar() or 0,
        "lowStockCount": db.query(func.count(Product.id)).filter(Product.current_quantity <= Product.min_quantity).scalar() or 0,
        "totalEmployees": db.query(func.count(Employee.id)).scalar() or 0,
        "totalSuppliers": db.query(func.count(Supplier.id)).scalar() or 0,
        "totalCustomers": db.query(func.count(Customer.id)).scalar() or 0,
    }


def period_stats(db: Session, start: datetime, end: datetime) -> Dict[str, Any]:
    sales, sales_count = invoice_totals(db, "sale", start, end)
    purchases, purchases_count = invoice_totals(db, "purchase", start, end)
    return {
        "totalSales": sales,
        "salesCount": sales_count,
        "totalPurchases": purchases,
        "purchasesCount": purchases_count,
        "profit": sales - purchases,
    }


def monthly_totals(db: Session, year: Optional[int] = None) -> List[Dict[str, Any]]:
    """Ventes et achats regroupés par mois (AAAA-MM), du plus ancien au plus récent."""
    year_col = extract("year", Invoice.created_at)
    month_col = extract("month", Invoice.created_at)
    query = db.query(
        year_col.label("year"),
        month_col.label("month"),
        func.coalesce(func.sum(case((Invoice.type == "sale", Invoice.total), else_=0)), 0).label("sales"),
        func.coalesce(func.sum(case((Invoice.type == "purchase", Invoice.total), else_=0)), 0).label("purchases"),
        func.count(Invoice.id).label("count"),
    ).filter(Invoice.created_at.isnot(None))
    if year is not None:
        query = query.filter(year_col == year)
    rows = query.group_by(year_col, month_col).order_by(year_col, month_col).all()

    result = []
    for row in rows:
        sales = float(row.sales or 0)
        purchases = float(row.purchases or 0)
        result.append({
            "month": f"{int(row.year):04d}-{int(row.month):02d}",
            "sales": sales,
            "purchases": purchases,
            "profit": sales - purchases,
            "invoicesCount": int(row.count or 0),
        })
    return result
