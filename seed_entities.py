"""
Utility script to load demo entities for one organization.
Run this script to seed projects, contacts, wallets and categories:
    python seed_entities.py [organization_id]
"""
import sys

from sqlalchemy import select

from nlpipe.sqlite.database import get_db_context, init_db
from nlpipe.sqlite.models import Contact, MovementCategory, Project, Wallet

DEMO_PROJECTS = ["Casa Sur", "Edificio Torre-Norte", "Barrio Los Álamos"]
DEMO_CONTACTS = [
    {"full_name": "Juan Pérez", "first_name": "Juan", "last_name": "Pérez"},
    {"first_name": "María", "last_name": "González"},
    {"full_name": "Corralón El Puente"},
]
DEMO_WALLETS = ["Caja Chica", "Banco"]
DEMO_CATEGORIES = ["Materiales", "Mano de Obra", "Honorarios"]


def seed_organization(organization_id: str) -> int:
    """Insert the demo rows that are not there yet.  Returns how many were added."""
    added = 0
    with get_db_context() as db:
        def exists(model, **filters) -> bool:
            stmt = select(model).filter_by(organization_id=organization_id, **filters)
            return db.execute(stmt).first() is not None

        for name in DEMO_PROJECTS:
            if not exists(Project, name=name):
                db.add(Project(organization_id=organization_id, name=name))
                added += 1
        for contact in DEMO_CONTACTS:
            if not exists(Contact, **contact):
                db.add(Contact(organization_id=organization_id, **contact))
                added += 1
        for name in DEMO_WALLETS:
            if not exists(Wallet, name=name):
                db.add(Wallet(organization_id=organization_id, name=name))
                added += 1
        for name in DEMO_CATEGORIES:
            if not exists(MovementCategory, name=name):
                db.add(MovementCategory(organization_id=organization_id, name=name))
                added += 1
    return added


if __name__ == "__main__":
    print("=" * 50)
    print("Seed Demo Entities")
    print("=" * 50)

    if not init_db():
        print("Database initialization failed!")
        sys.exit(1)

    organization_id = sys.argv[1] if len(sys.argv) > 1 else input("Enter organization id: ").strip()
    if not organization_id:
        print("Organization id is required!")
        sys.exit(1)

    try:
        added = seed_organization(organization_id)
    except Exception as e:
        print(f"Error seeding entities: {e}")
        sys.exit(1)

    print(f"✓ Added {added} record(s) for organization {organization_id}")
    print("\nRemember to call POST /api/v1/organizations/{id}/entity-cache/invalidate on a running server")
