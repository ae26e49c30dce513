from drawer_dispatch.database import SessionLocal, init_db
from drawer_dispatch import crud, schemas

DEMO_DEVICE_ID = "drawer-unit-001"

def seed():
    init_db()
    db = SessionLocal()
    try:
        # Register a demo drawer unit
        if not crud.device_exists(db, DEMO_DEVICE_ID):
            crud.create_device(db, schemas.DeviceCreate(
                id=DEMO_DEVICE_ID,
                name="Demo Drawer Unit",
                location="Lab",
                drawer_count=4,
            ))

        # Queue a first command for it
        command = crud.create_command(db, DEMO_DEVICE_ID, "OPEN", drawer=1)

        print(f"✅ Seeded device {DEMO_DEVICE_ID} with command {command.code}")
    finally:
        db.close()

if __name__ == "__main__":
    seed()
