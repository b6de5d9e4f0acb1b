from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
import logging
import os

from .database import (
    engine as default_engine,
    create_tables,
    User,
    Category,
    Product,
    WebsiteSettings,
    Contact,
)
from .auth import get_password_hash

logger = logging.getLogger(__name__)

# Colonnes apparues après la première version des tables.
# (table, colonne, DDL, valeur de remplissage ou None)
ADDITIVE_COLUMNS = [
    ("categories", "created_at", "DATETIME DEFAULT CURRENT_TIMESTAMP", None),
    ("categories", "updated_at", "DATETIME DEFAULT CURRENT_TIMESTAMP", None),
    ("products", "category_id", "INTEGER", None),
    ("special_offers", "name", "TEXT", None),
    ("special_offers", "nameFr", "TEXT", None),
    ("special_offers", "nameAr", "TEXT", None),
    ("special_offers", "description", "TEXT", None),
    ("special_offers", "descriptionFr", "TEXT", None),
    ("special_offers", "descriptionAr", "TEXT", None),
    ("special_offers", "end_time", "TEXT", None),
    ("special_offers", "is_active", "BOOLEAN DEFAULT 1", None),
    ("special_offers", "products_count", "INTEGER DEFAULT 0", None),
    ("special_offers", "quality", "INTEGER DEFAULT 5", None),
    ("special_offers", "created_at", "DATETIME DEFAULT CURRENT_TIMESTAMP", None),
    ("special_offers", "updated_at", "DATETIME DEFAULT CURRENT_TIMESTAMP", None),
    ("special_offer_products", "offer_price", "REAL DEFAULT 0", None),
    ("special_offer_products", "image", "TEXT", None),
    ("special_offer_products", "descriptionFr", "TEXT", None),
    ("special_offer_products", "descriptionAr", "TEXT", None),
    ("special_offer_products", "quality", "INTEGER DEFAULT 5", None),
    ("users", "username", "TEXT", "admin"),
    ("invoices", "client_name", "TEXT", None),
    ("invoices", "createdByType", "TEXT", "admin"),
]


def ensure_column(bind: Engine, table: str, name: str, ddl: str, fallback_value=None) -> bool:
    """Ajouter une colonne manquante à une table existante.

    Idempotent: la colonne n'est ajoutée (puis éventuellement remplie avec
    ``fallback_value``) que si l'introspection ne la trouve pas.
    Retourne True si la colonne a été créée.
    """
    columns = [col["name"] for col in inspect(bind).get_columns(table)]
    if name in columns:
        return False

    logger.info(f"⏳ Ajout de la colonne manquante '{name}' à la table '{table}'...")
    with bind.begin() as conn:
        conn.execute(text(f'ALTER TABLE {table} ADD COLUMN "{name}" {ddl}'))
        if fallback_value is not None:
            conn.execute(text(f'UPDATE {table} SET "{name}" = :value'), {"value": fallback_value})
    logger.info(f"✅ Colonne '{name}' ajoutée à '{table}'")
    return True


def backfill_product_categories(db: Session) -> int:
    """Relier les produits qui n'ont que l'ancien libellé texte à leur catégorie.

    Le rapprochement se fait sur le nom français de la catégorie. Les
    produits déjà reliés ne sont pas touchés.
    """
    linked = 0
    categories = {c.name_fr: c.id for c in db.query(Category).all() if c.name_fr}
    if not categories:
        return 0

    orphans = (
        db.query(Product)
        .filter(Product.category_id.is_(None), Product.category.isnot(None))
        .all()
    )
    for product in orphans:
        category_id = categories.get((product.category or "").strip())
        if category_id is not None:
            product.category_id = category_id
            linked += 1
    return linked


def seed_singletons(db: Session) -> None:
    """Créer l'administrateur par défaut et les lignes uniques (id=1) si absentes."""
    admin_email = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@nasser.com")
    if db.query(User).count() == 0:
        db.add(User(
            email=admin_email,
            username="admin",
            password=get_password_hash(os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")),
            role="admin",
        ))
        logger.info(f"✅ Utilisateur admin créé: {admin_email}")

    if db.get(WebsiteSettings, 1) is None:
        db.add(WebsiteSettings(id=1))
        logger.info("✅ Paramètres du site initialisés")

    if db.get(Contact, 1) is None:
        db.add(Contact(id=1))
        logger.info("✅ Fiche contacts initialisée")


def init_database(bind: Engine = None):
    """Initialiser la base: tables, colonnes additives, données par défaut.

    Toute erreur est journalisée puis propagée: le serveur ne doit pas
    démarrer sur un schéma inutilisable.
    """
    bind = bind or default_engine
    try:
        create_tables(bind)
        logger.info("✅ Tables créées/vérifiées")

        for table, name, ddl, fallback in ADDITIVE_COLUMNS:
            ensure_column(bind, table, name, ddl, fallback)

        db = sessionmaker(autocommit=False, autoflush=False, bind=bind)()
        try:
            seed_singletons(db)
            linked = backfill_product_categories(db)
            if linked:
                logger.info(f"✅ {linked} produit(s) reliés à leur catégorie")

            if db.new or db.dirty or db.deleted:
                db.commit()
                logger.info("✅ Base de données initialisée/mise à jour avec succès")
            else:
                logger.info("ℹ️ Schéma à jour, aucune écriture effectuée")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    except Exception as e:
        logger.error(f"❌ Erreur lors de l'initialisation de la base de données: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
