from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging
import os
from dotenv import load_dotenv

# Charger les variables d'environnement
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("autoparts")

# Imports de l'application
from autoparts.database import engine
from autoparts.init_db import init_database
from autoparts.middleware import error_handling_middleware, service_error_handler
from autoparts.services.errors import ServiceError
from autoparts.uploads import UPLOAD_DIR
from autoparts.routers import (
    auth,
    products,
    suppliers,
    customers,
    employees,
    categories,
    special_offers,
    site,
    invoices,
    orders,
    dashboard,
    reports,
    system,
)

# Créer l'application FastAPI
app = FastAPI(
    title="Nasser Auto Parts - Back-office",
    description="Gestion du stock de pièces auto, facturation et commandes de la boutique",
    version="1.0.0"
)

# Configuration CORS pour le back-office et la boutique (domaines séparés)
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:8080,http://localhost:8081").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(error_handling_middleware)
app.add_exception_handler(ServiceError, service_error_handler)

# Initialiser la base de données au démarrage
@app.on_event("startup")
async def startup_event():
    if os.getenv("INIT_DB_ON_STARTUP", "true").lower() == "true":
        logger.info("⚙️ INIT_DB_ON_STARTUP=true → initialisation de la base")
        # Une erreur ici empêche le démarrage du serveur
        init_database()
    else:
        logger.info("⏭️ INIT_DB_ON_STARTUP!=true → saut de l'initialisation de la base")
    logger.info("✅ Application démarrée avec succès")

@app.on_event("shutdown")
async def shutdown_event():
    engine.dispose()
    logger.info("✅ Application arrêtée proprement")

# Images envoyées par le back-office
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# Inclure les routers
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(suppliers.router)
app.include_router(customers.router)
app.include_router(employees.router)
app.include_router(categories.router)
app.include_router(categories.category_products_router)
app.include_router(special_offers.router)
app.include_router(site.router)
app.include_router(invoices.router)
app.include_router(orders.router)
app.include_router(dashboard.router)
app.include_router(reports.router)
app.include_router(reports.events_router)
app.include_router(system.router)

@app.get("/health")
async def health():
    return {"status": "ok", "version": app.version}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level="info"
    )
