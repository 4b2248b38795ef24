"""
Seed the catalog and the default causes.
Run: python backend/seed_products.py [--reset]
"""
import sys
from decimal import Decimal
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).resolve().parent
sys.path.insert(0, str(backend_path))

from app.database import Base, SessionLocal, engine, init_models
from app.cause_models import Cause
from app.product_models import Product

IMG = "https://images.unsplash.com/photo-{}?w=400&h=400&fit=crop"

PRODUCTS = [
    {"name": "Custom Print T-Shirt", "price": "29.99", "category": "Apparel", "donation_amount": "5",
     "image_url": IMG.format("1521572163474-6864f9cf17ab"),
     "description": "Premium quality cotton t-shirt with custom print options"},
    {"name": "Branded Mug Set", "price": "24.99", "category": "Drinkware", "donation_amount": "3",
     "image_url": IMG.format("1514228742587-6b1558fcca3d"),
     "description": "Set of 2 ceramic mugs with your custom design"},
    {"name": "Eco Tote Bag", "price": "19.99", "category": "Accessories", "donation_amount": "4",
     "description": "Organic cotton tote printed with water-based inks"},
    {"name": "Custom Notebook", "price": "15.99", "category": "Stationery", "donation_amount": "2",
     "description": "A5 notebook with a printed cover of your choice"},
    {"name": "Printed Hoodie", "price": "22.99", "category": "Apparel", "donation_amount": "4",
     "description": "Fleece hoodie with front print"},
    {"name": "Sticker Pack", "price": "18.99", "category": "Stationery", "donation_amount": "2",
     "description": "Twenty die-cut vinyl stickers"},
]

CAUSES = [
    {"name": "education", "description": "School supplies, scholarships and literacy programs", "tags": ["kids", "schools"]},
    {"name": "healthcare", "description": "Clinics, medicine and health outreach", "tags": ["health"]},
    {"name": "environment", "description": "Reforestation and clean water projects", "tags": ["climate", "water"]},
    {"name": "community", "description": "Local food banks and shelters", "tags": ["local"]},
    {"name": "poverty", "description": "Poverty relief and emergency support", "tags": ["relief"]},
    {"name": "animals", "description": "Animal welfare and rescue shelters", "tags": ["animals"]},
]


def seed(reset: bool = False):
    if reset:
        Base.metadata.drop_all(bind=engine)
        print("Tables dropped")
    init_models()

    db = SessionLocal()
    try:
        for p_data in PRODUCTS:
            if db.query(Product).filter(Product.name == p_data["name"]).first():
                print(f"Skipped (exists): {p_data['name']}")
                continue
            db.add(Product(**{**p_data, "price": Decimal(p_data["price"]),
                              "donation_amount": Decimal(p_data["donation_amount"])}))
            print(f"Added product: {p_data['name']}")

        for c_data in CAUSES:
            if db.query(Cause).filter(Cause.name == c_data["name"]).first():
                print(f"Skipped (exists): {c_data['name']}")
                continue
            db.add(Cause(**c_data))
            print(f"Added cause: {c_data['name']}")

        db.commit()
    finally:
        db.close()
    print("Seeding completed")


if __name__ == "__main__":
    seed(reset="--reset" in sys.argv)
