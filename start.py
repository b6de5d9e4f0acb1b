#!/usr/bin/env python3
"""
Script de démarrage du back-office Nasser Auto Parts
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Ajouter le répertoire racine au PYTHONPATH
root_dir = Path(__file__).parent
sys.path.insert(0, str(root_dir))

load_dotenv()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Lancer l'API Nasser Auto Parts")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    parser.add_argument("--reload", action="store_true", default=os.getenv("RELOAD", "false").lower() == "true")
    parser.add_argument(
        "--init-only",
        action="store_true",
        help="Créer/mettre à niveau le schéma de la base puis quitter",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Démarrer l'application FastAPI"""
    args = parse_args(argv)
    database_url = os.getenv("DATABASE_URL", "sqlite:///./database.sqlite")

    if args.init_only:
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
        from autoparts.init_db import init_database
        init_database()
        print(f"✅ Schéma à jour: {database_url}")
        return

    print("🚀 Démarrage de Nasser Auto Parts - Back-office")
    print("=" * 50)
    print(f"📍 Serveur: http://{args.host}:{args.port}  (documentation: /docs)")
    print(f"🔄 Rechargement automatique: {'Activé' if args.reload else 'Désactivé'}")
    print(f"🗄️  Base de données: {database_url}")
    print(f"📁 Images: {os.getenv('UPLOAD_DIR', 'uploads')}  |  Sauvegardes: {os.getenv('BACKUP_DIR', 'backups')}")
    print(f"💡 Compte administrateur par défaut: {os.getenv('DEFAULT_ADMIN_EMAIL', 'admin@nasser.com')}")
    print("=" * 50)

    try:
        uvicorn.run(
            "main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n👋 Arrêt de l'application")
    except Exception as e:
        print(f"❌ Erreur lors du démarrage: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
