from sqlalchemy import (
    create_engine,
    event,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    Float,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.engine import Engine
from sqlalchemy.sql import func
import os
from dotenv import load_dotenv

load_dotenv()

# Source de vérité de la connexion DB (fichier SQLite unique par défaut)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./database.sqlite")


def make_engine(url: str) -> Engine:
    """Construire un moteur SQLAlchemy pour l'URL donnée.

    Pour SQLite, la même connexion est partagée entre les threads du serveur
    et les clés étrangères sont activées à chaque connexion.
    """
    engine_kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    new_engine = create_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_fk(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Les noms de tables et de colonnes reprennent ceux des bases existantes
# (database.sqlite) pour pouvoir ouvrir un fichier déjà en production.

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)  # hash bcrypt (ou ancien mot de passe en clair)
    role = Column(String, nullable=False, default="admin")
    username = Column(String, default="admin")


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String)
    role = Column(String, nullable=False)
    salary = Column(Float, default=0)
    hire_date = Column("hireDate", String, nullable=False)
    status = Column(String, default="active")
    address = Column(String)
    username = Column(String, unique=True)
    password = Column(String)
    has_account = Column("hasAccount", Boolean, default=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    payments = relationship("EmployeePayment", back_populates="employee", cascade="all, delete-orphan")


class EmployeePayment(Base):
    __tablename__ = "employee_payments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(String, nullable=False)
    type = Column(String, nullable=False)  # salary, advance, bonus...

    employee = relationship("Employee", back_populates="payments")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String)
    address = Column(String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    phone = Column(String)
    address = Column(String)
    created_at = Column(DateTime, default=func.now())


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name_fr = Column("nameFr", String, unique=True, nullable=False)
    name_ar = Column("nameAr", String)
    image = Column(String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    category_products = relationship("CategoryProduct", back_populates="category", cascade="all, delete-orphan")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    barcode = Column(String, unique=True)
    brand = Column(String)
    # Libellé hérité, recopié depuis la catégorie liée (category_id fait foi)
    category = Column(String)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    buying_price = Column(Float, default=0)
    selling_price = Column(Float, default=0)
    margin_percent = Column(Float, default=0)
    initial_quantity = Column(Integer, default=0)
    current_quantity = Column(Integer, default=0)
    min_quantity = Column(Integer, default=0)
    supplier = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    supplier_ref = relationship("Supplier")
    category_ref = relationship("Category")


class CategoryProduct(Base):
    __tablename__ = "category_products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    name = Column(String, nullable=False, default="")
    name_fr = Column("nameFr", String)
    name_ar = Column("nameAr", String)
    description = Column(Text)
    description_fr = Column("descriptionFr", Text)
    description_ar = Column("descriptionAr", Text)
    selling_price = Column(Float, default=0)
    quality = Column(Integer, default=5)
    image = Column(String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="category_products")


class SpecialOffer(Base):
    __tablename__ = "special_offers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String)
    name_fr = Column("nameFr", String)
    name_ar = Column("nameAr", String)
    description = Column(Text)
    description_fr = Column("descriptionFr", Text)
    description_ar = Column("descriptionAr", Text)
    end_time = Column(String)  # ISO 8601
    is_active = Column(Boolean, default=True)
    products_count = Column(Integer, default=0)
    quality = Column(Integer, default=5)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    offer_products = relationship("SpecialOfferProduct", back_populates="offer", cascade="all, delete-orphan")


class SpecialOfferProduct(Base):
    __tablename__ = "special_offer_products"

    id = Column(Integer, primary_key=True, index=True)
    offer_id = Column(Integer, ForeignKey("special_offers.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    offer_price = Column(Float, default=0)
    description_fr = Column("descriptionFr", Text)
    description_ar = Column("descriptionAr", Text)
    quality = Column(Integer, default=5)
    image = Column(String)
    created_at = Column(DateTime, default=func.now())

    offer = relationship("SpecialOffer", back_populates="offer_products")
    product = relationship("Product")

    __table_args__ = (UniqueConstraint("offer_id", "product_id"),)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False)  # purchase, sale
    supplier_id = Column("supplierId", Integer, ForeignKey("suppliers.id"), nullable=True)
    client_id = Column("clientId", Integer, ForeignKey("customers.id"), nullable=True)
    client_name = Column(String)
    total = Column(Float, nullable=False)
    amount_paid = Column(Float, default=0)
    status = Column(String, default="pending")  # pending, partial, paid (indicatif)
    created_at = Column(DateTime, default=func.now())
    created_by = Column("createdBy", Integer, nullable=True)
    created_by_type = Column("createdByType", String, default="admin")  # admin, employee

    items = relationship("InvoiceItem", back_populates="invoice", order_by="InvoiceItem.id", passive_deletes=True)
    supplier = relationship("Supplier")
    client = relationship("Customer")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    # Pas de clé étrangère stricte: une ligne reste lisible si le produit est supprimé
    product_id = Column(Integer, nullable=False)
    product_name = Column(String, nullable=False)
    barcode = Column(String)
    purchase_price = Column(Float, default=0)
    margin_percent = Column(Float, default=0)
    selling_price = Column(Float, default=0)
    quantity = Column(Integer, default=0)
    min_quantity = Column(Integer, default=0)
    total = Column(Float, default=0)

    invoice = relationship("Invoice", back_populates="items")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String, nullable=False)
    client_email = Column(String)
    client_phone = Column(String)
    wilaya = Column(String)
    address = Column(String)
    notes = Column(Text)
    payment_method = Column(String, default="cod")
    total = Column(Float, default=0)
    status = Column(String, default="pending")  # pending, confirmed, completed
    payment_status = Column(String, default="unpaid")
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id", passive_deletes=True)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"))
    product_id = Column(Integer)
    product_name = Column(String)
    quantity = Column(Integer, default=1)
    price = Column(Float, default=0)
    total = Column(Float, default=0)

    order = relationship("Order", back_populates="items")


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    period_start = Column(String)
    period_end = Column(String)
    generated_at = Column(DateTime, default=func.now())
    status = Column(String, nullable=False)  # completed, processing, error
    size = Column(String)
    creator = Column(String)


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    start = Column(String, nullable=False)
    end = Column(String, nullable=False)
    all_day = Column("allDay", Boolean, default=False)
    created_at = Column(DateTime, default=func.now())


class WebsiteSettings(Base):
    __tablename__ = "website_settings"

    id = Column(Integer, primary_key=True, default=1)
    site_name_fr = Column(String, default="Mon Site")
    site_name_ar = Column(String, default="موقعي")
    description_fr = Column(Text, default="Description du site web")
    description_ar = Column(Text, default="وصف الموقع الإلكتروني")
    logo_url = Column(String)
    favicon_url = Column(String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id = 1", name="ck_website_settings_singleton"),)


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, default=1)
    phone = Column(String)
    whatsapp = Column(String)
    email = Column(String)
    facebook = Column(String)
    instagram = Column(String)
    tiktok = Column(String)
    viber = Column(String)
    map_url = Column("mapUrl", String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id = 1", name="ck_contacts_singleton"),)


# Fonction pour créer les tables manquantes
def create_tables(bind: Engine = None):
    Base.metadata.create_all(bind=bind or engine)

# Fonction pour obtenir une session de base de données
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
