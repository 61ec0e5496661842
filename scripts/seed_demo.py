import asyncio
import os
import sys
from datetime import timedelta

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from carebook.core.base import utcnow
from carebook.core.db import Database
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.identity.schemas import UserCreate
from carebook.modules.identity.service import IdentityService

DEMO_USERS = [
    {"email": "provider@example.com", "first_name": "Ada", "last_name": "Provider", "roles": ["provider"]},
    {"email": "patient@example.com", "first_name": "Bo", "last_name": "Patient", "roles": ["patient"]},
]

async def main():
    """
    Creates one provider, one patient and a handful of credits for each.
    """
    print("Seeding demo data...")
    db = Database()
    await db.init_models()

    async with db.session() as session:
        identity = IdentityService(session)
        ledger = CreditLedger(session)
        for data in DEMO_USERS:
            user = await identity.users.get_by_email(data["email"])
            if user:
                print(f"  - {data['email']} already exists. Skipping.")
                continue
            user = await identity.register(UserCreate(**data))
            print(f"  - Created {data['roles'][0]} {user.email} ({user.id})")

            for i in range(3):
                credit = await ledger.add(user.id, "consult", utcnow() + timedelta(days=90 + i))
                print(f"    ...credit {credit.id} expires {credit.expiration_date:%Y-%m-%d}")
            await session.commit()

    await db.dispose()
    print("Done.")

if __name__ == "__main__":
    asyncio.run(main())
