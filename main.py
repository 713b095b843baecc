import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pymongo import ReturnDocument

from catalog import ALL_CATEGORIES, CatalogQuery, SortKey, filter_products
from database import create_document, db, get_documents
from pricing import generate_promo_code
from schemas import (
    Category,
    Donation,
    DonationIn,
    DonationStatus,
    DonationStatusUpdate,
    LoginRequest,
    Product,
    ProductUpdate,
    RegisterRequest,
    User,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("sustain_sports")

# App setup
app = FastAPI(title="Sustain Sports API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security/JWT setup
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))
security = HTTPBearer()
password_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# Utilities
def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid id")
    return ObjectId(id_str)


def to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = {**doc}
    if d.get("_id") is not None:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.astimezone(timezone.utc).isoformat()
    return d


def public_user(user: dict) -> dict:
    d = to_str_id(user)
    d.pop("hashed_password", None)
    return d


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return password_ctx.verify(password, hashed)


def create_token(user: dict) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "is_admin": user.get("is_admin", False),
        "exp": now + timedelta(minutes=JWT_EXPIRES_MIN),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    payload = decode_token(credentials.credentials)
    uid = payload.get("sub")
    user = db["user"].find_one({"_id": ObjectId(uid)}) if ObjectId.is_valid(uid or "") else None
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def category_map() -> Dict[str, dict]:
    return {str(c["_id"]): {"id": str(c["_id"]), "name": c.get("name")} for c in db["category"].find({})}


def serialize_product(doc: dict, categories: Optional[Dict[str, dict]] = None) -> dict:
    """Product document with its category populated as {"id", "name"}."""
    if categories is None:
        categories = category_map()
    p = to_str_id(doc)
    cat = p.get("category")
    p["category"] = categories.get(cat, {"id": cat, "name": None})
    return p


# Health and helpers
@app.get("/")
def root():
    return {"message": "Sustain Sports API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Auth
@app.post("/api/auth/register")
def register(payload: RegisterRequest):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(name=payload.name, email=payload.email, hashed_password=hash_password(payload.password))
    user_id = create_document("user", user)
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    return {"token": create_token(user), "user": public_user(user)}


@app.post("/api/auth/login")
def login(payload: LoginRequest):
    user = db["user"].find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("hashed_password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


@app.get("/api/auth/me")
async def me(current_user: dict = Depends(get_current_user)):
    return public_user(current_user)


# Catalog
@app.get("/api/categories")
def list_categories():
    return [to_str_id(c) for c in db["category"].find({}).sort("name", 1)]


@app.get("/api/products")
def list_products(q: str = "", category: str = ALL_CATEGORIES, min_price: float = 0.0,
                  max_price: Optional[float] = None, sort: SortKey = SortKey.NAME):
    categories = category_map()
    products = [serialize_product(p, categories) for p in get_documents("product")]
    query = CatalogQuery(term=q, category=category, min_price=min_price, sort=sort)
    if max_price is not None:
        query.max_price = max_price
    return filter_products(products, query)


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    doc = db["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_product(doc)


# Admin: users
@app.get("/api/admin/users")
async def admin_list_users(admin: dict = Depends(require_admin)):
    return [public_user(u) for u in get_documents("user")]


@app.get("/api/admin/users/{user_id}")
async def admin_get_user(user_id: str, admin: dict = Depends(require_admin)):
    user = db["user"].find_one({"_id": oid(user_id)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(user)


@app.delete("/api/admin/users/{user_id}")
async def admin_delete_user(user_id: str, admin: dict = Depends(require_admin)):
    user = db["user"].find_one({"_id": oid(user_id)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.get("is_admin"):
        raise HTTPException(status_code=400, detail="Cannot delete an admin user")
    db["user"].delete_one({"_id": user["_id"]})
    logger.info("User %s removed by %s", user_id, admin.get("email"))
    return {"message": "User removed"}


# Admin: categories and products
@app.post("/api/admin/categories", status_code=201)
async def admin_create_category(payload: Category, admin: dict = Depends(require_admin)):
    cat_id = create_document("category", payload)
    return to_str_id(db["category"].find_one({"_id": ObjectId(cat_id)}))


@app.get("/api/admin/products")
async def admin_list_products(admin: dict = Depends(require_admin)):
    categories = category_map()
    return [serialize_product(p, categories) for p in get_documents("product")]


@app.post("/api/admin/products", status_code=201)
async def admin_create_product(admin: dict = Depends(require_admin)):
    default_category = db["category"].find_one({})
    if not default_category:
        raise HTTPException(status_code=400, detail="No categories found. Please create a category first.")
    product = Product(
        user=str(admin["_id"]),
        name="Sample Name",
        price=0,
        image="/images/sample.jpg",
        images=["/images/sample.jpg"],
        category=str(default_category["_id"]),
        description="Sample description",
        in_stock=False,
        original_price=0,
        full_description="This is a sample product. Please update its details.",
        eco_tag="Eco Friendly",
        features=["Feature 1", "Feature 2"],
    )
    product_id = create_document("product", product)
    logger.info("Product %s created by %s", product_id, admin.get("email"))
    return serialize_product(db["product"].find_one({"_id": ObjectId(product_id)}))


@app.get("/api/admin/products/{product_id}")
async def admin_get_product(product_id: str, admin: dict = Depends(require_admin)):
    doc = db["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_product(doc)


@app.put("/api/admin/products/{product_id}")
async def admin_update_product(product_id: str, payload: ProductUpdate, admin: dict = Depends(require_admin)):
    _id = oid(product_id)
    update = payload.changes()
    nulls = sorted(k for k, v in update.items() if v is None and k not in ProductUpdate.NULLABLE)
    if nulls:
        raise HTTPException(status_code=400, detail=f"Fields cannot be null: {', '.join(nulls)}")
    if db["product"].count_documents({"_id": _id}) == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    if "category" in update:
        cat = db["category"].find_one({"_id": oid(update["category"])})
        if not cat:
            raise HTTPException(status_code=400, detail="Category not found")
    update["updated_at"] = datetime.now(timezone.utc)
    doc = db["product"].find_one_and_update({"_id": _id}, {"$set": update}, return_document=ReturnDocument.AFTER)
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s updated by %s: %s", product_id, admin.get("email"), sorted(k for k in update if k != "updated_at"))
    return serialize_product(doc)


@app.delete("/api/admin/products/{product_id}")
async def admin_delete_product(product_id: str, admin: dict = Depends(require_admin)):
    res = db["product"].delete_one({"_id": oid(product_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s removed by %s", product_id, admin.get("email"))
    return {"message": "Product removed"}


@app.get("/api/admin/stats")
async def admin_stats(admin: dict = Depends(require_admin)):
    return {
        "userCount": db["user"].count_documents({}),
        "productCount": db["product"].count_documents({}),
    }


# Admin: donations
@app.get("/api/admin/donations")
async def admin_list_donations(admin: dict = Depends(require_admin)):
    users = {u["_id"]: u for u in db["user"].find({})}
    items = []
    for d in db["donation"].find({}).sort("created_at", -1):
        donation = to_str_id(d)
        owner = users.get(ObjectId(d["user"])) if ObjectId.is_valid(d.get("user", "")) else None
        donation["user"] = {"id": d.get("user"), "name": owner.get("name"), "email": owner.get("email")} if owner else None
        items.append(donation)
    return items


@app.put("/api/admin/donations/{donation_id}")
async def admin_update_donation(donation_id: str, payload: DonationStatusUpdate, admin: dict = Depends(require_admin)):
    try:
        status = DonationStatus(payload.status)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid status value")
    donation = db["donation"].find_one({"_id": oid(donation_id)})
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    update: Dict[str, Any] = {"status": status.value, "updated_at": datetime.now(timezone.utc)}
    if status == DonationStatus.APPROVED and not donation.get("promo_code"):
        update["promo_code"] = generate_promo_code()
    db["donation"].update_one({"_id": donation["_id"]}, {"$set": update})
    logger.info("Donation %s set to %s by %s", donation_id, status.value, admin.get("email"))
    return to_str_id(db["donation"].find_one({"_id": donation["_id"]}))


# Donations
@app.post("/api/donations", status_code=201)
async def create_donation(payload: DonationIn, user: dict = Depends(get_current_user)):
    donation = Donation(user=str(user["_id"]), item_name=payload.item_name, item_description=payload.item_description)
    donation_id = create_document("donation", donation)
    return to_str_id(db["donation"].find_one({"_id": ObjectId(donation_id)}))


@app.get("/api/donations/mydonations")
async def my_donations(user: dict = Depends(get_current_user)):
    cursor = db["donation"].find({"user": str(user["_id"])}).sort("created_at", -1)
    return [to_str_id(d) for d in cursor]


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
