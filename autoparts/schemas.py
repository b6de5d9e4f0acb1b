from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Union, Any, Dict
from datetime import datetime

# Schémas pour l'authentification
class LoginRequest(BaseModel):
    login: Optional[str] = None
    password: Optional[str] = None

class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True

class WorkerUpdate(BaseModel):
    username: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    address: Optional[str] = None

class WorkerPasswordChange(BaseModel):
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True

# Auteur d'une facture: administrateur ou employé
class AdminCreator(BaseModel):
    kind: Literal["admin"] = "admin"
    id: int

class EmployeeCreator(BaseModel):
    kind: Literal["employee"] = "employee"
    id: int

Creator = Union[AdminCreator, EmployeeCreator]

def creator_from_wire(created_by: Any, created_by_type: Optional[str]) -> Optional[Creator]:
    """Convertir le couple (createdBy, createdByType) reçu du frontend en Creator."""
    if created_by in (None, ""):
        return None
    try:
        creator_id = int(created_by)
    except (TypeError, ValueError):
        return None
    if (created_by_type or "admin") == "employee":
        return EmployeeCreator(id=creator_id)
    return AdminCreator(id=creator_id)

# Schémas pour les fournisseurs
class SupplierCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None

class SupplierResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Schémas pour les clients
class CustomerCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None

class CustomerResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Schémas pour les employés
class EmployeeCreate(BaseModel):
    name: str
    role: str
    salary: float
    phone: Optional[str] = None
    address: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    has_account: bool = Field(False, alias="hasAccount")

    class Config:
        populate_by_name = True

class EmployeePaymentCreate(BaseModel):
    amount: float
    date: str
    type: str

class EmployeePaymentResponse(BaseModel):
    id: int
    employee_id: int
    amount: float
    date: str
    type: str

    class Config:
        from_attributes = True

# Schémas pour les produits
class ProductCreate(BaseModel):
    name: str
    barcode: str
    brand: str
    category: Optional[str] = None
    category_id: Optional[int] = None
    buying_price: float = 0
    selling_price: float = 0
    margin_percent: float = 0
    initial_quantity: int = 0
    current_quantity: int = 0
    min_quantity: int = 0
    supplier: Optional[int] = None

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[int] = None
    buying_price: Optional[float] = None
    selling_price: Optional[float] = None
    margin_percent: Optional[float] = None
    initial_quantity: Optional[int] = None
    current_quantity: Optional[int] = None
    min_quantity: Optional[int] = None
    supplier: Optional[int] = None

# Schémas pour les factures
class InvoiceCreate(BaseModel):
    """Corps brut d'une facture; la validation métier est faite par le service."""
    type: Optional[str] = None
    supplier_id: Optional[int] = Field(None, alias="supplierId")
    client_id: Optional[int] = Field(None, alias="clientId")
    client_name: Optional[str] = None
    total: Optional[float] = None
    amount_paid: float = 0
    items: Optional[List[Dict[str, Any]]] = None
    created_by: Optional[Any] = Field(None, alias="createdBy")
    created_by_type: Optional[str] = Field(None, alias="createdByType")

    class Config:
        populate_by_name = True

class InvoiceLine(BaseModel):
    """Ligne de facture normalisée (forme canonique unique)."""
    product_id: int
    product_name: str
    barcode: Optional[str] = None
    buying_price: float = 0
    margin_percent: float = 0
    # None = prix de vente non fourni (la vente conserve le prix existant, l'achat écrit 0)
    selling_price: Optional[float] = None
    quantity: int = 0
    min_quantity: int = 0
    total: float = 0

class InvoicePaymentUpdate(BaseModel):
    amount_paid: float

# Schémas pour les commandes de la boutique
class OrderItemIn(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int = 1
    price: float = 0
    total: float = 0

class OrderCreate(BaseModel):
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    wilaya: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    items: Optional[List[OrderItemIn]] = None

class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None

# Schémas pour les offres spéciales
class SpecialOfferCreate(BaseModel):
    name_fr: Optional[str] = Field(None, alias="nameFr")
    name_ar: Optional[str] = Field(None, alias="nameAr")
    description_fr: Optional[str] = Field(None, alias="descriptionFr")
    description_ar: Optional[str] = Field(None, alias="descriptionAr")
    end_time: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        populate_by_name = True

# Schémas pour les contacts
class ContactUpdate(BaseModel):
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    viber: Optional[str] = None
    map_url: Optional[str] = Field(None, alias="mapUrl")

    class Config:
        populate_by_name = True

# Rapports et calendrier
class ReportCreate(BaseModel):
    name: str
    type: str
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    creator: Optional[str] = None

class EventCreate(BaseModel):
    title: str
    start: str
    end: str
    all_day: bool = Field(False, alias="allDay")

    class Config:
        populate_by_name = True
