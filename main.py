import io
import logging
import re
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.errors import DuplicateKeyError

import database
import orders
from auth import (
    CallerIdentity,
    get_current_caller,
    hash_password,
    require_admin,
    token_response,
    verify_password,
)
from config import get_settings, setup_logging
from database import (
    aggregate,
    count_documents,
    create_document,
    delete_document,
    ensure_indexes,
    get_document,
    get_document_by_id,
    get_documents,
    update_document,
)
from errors import AppError
from schemas import Food, OrderItem, OrderStatus, User
from uploads import upload_image

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    ensure_indexes()
    yield
    logger.info("Shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="API Documentation for Food Ordering System",
    docs_url="/api-docs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============ Request models ==========
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    address: str = ""


class UpdateProfileRequest(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = ""


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword", min_length=1)


class FoodUpdate(Food):
    id: str


class CreateOrderRequest(BaseModel):
    items: List[OrderItem]
    name: Optional[str] = None
    address: Optional[str] = None


class PayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(..., alias="paymentId", min_length=1)


class UpdateStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_paid: bool = Field(False, alias="isPaid")
    is_expired: bool = Field(False, alias="isExpired")


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": f"{settings.app_name} running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "collections": [],
    }
    try:
        if database.db is not None:
            response["collections"] = database.db.list_collection_names()
            response["database"] = "Connected"
        else:
            response["database"] = "Not configured"
    except Exception as e:
        logger.exception("Database check failed")
        response["database"] = f"Error: {str(e)[:80]}"
    return response


# ===================== Users =====================
@app.post("/api/users/login", tags=["Users"], summary="Login user")
def login(payload: LoginRequest):
    user = get_document("user", {"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(400, "Username or password is invalid")
    if user.get("is_blocked"):
        raise HTTPException(400, "User is blocked")
    return token_response(user)


@app.post("/api/users/register", tags=["Users"], summary="Register new user")
def register(payload: RegisterRequest):
    email = payload.email.lower()
    if get_document("user", {"email": email}):
        raise HTTPException(400, "User already exists, please login!")
    user = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        address=payload.address,
    )
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise HTTPException(400, "User already exists, please login!")
    logger.info(f"User {user_id} registered")
    return token_response(get_document_by_id("user", user_id))


@app.put("/api/users/updateProfile", tags=["Users"], summary="Update user profile")
def update_profile(payload: UpdateProfileRequest, caller: CallerIdentity = Depends(get_current_caller)):
    update_document("user", caller.id, {"name": payload.name, "address": payload.address})
    return token_response(get_document_by_id("user", caller.id))


@app.put("/api/users/changePassword", tags=["Users"], summary="Change user password")
def change_password(payload: ChangePasswordRequest, caller: CallerIdentity = Depends(get_current_caller)):
    user = get_document_by_id("user", caller.id)
    if not user:
        raise HTTPException(400, "Change Password Failed!")
    if not verify_password(payload.current_password, user["password_hash"]):
        raise HTTPException(400, "Current Password Is Not Correct!")
    update_document("user", caller.id, {"password_hash": hash_password(payload.new_password)})
    return "success"


def _list_users(search_term: Optional[str] = None):
    filt = {"name": {"$regex": re.escape(search_term), "$options": "i"}} if search_term else {}
    return get_documents("user", filt, sort=[("name", 1)], projection={"password_hash": 0})


@app.get("/api/users/getall", tags=["Users"], summary="Get all users (admin only)")
def get_all_users(_: CallerIdentity = Depends(require_admin)):
    return _list_users()


@app.get("/api/users/getall/{search_term}", tags=["Users"], summary="Search users by name (admin only)")
def search_users(search_term: str, _: CallerIdentity = Depends(require_admin)):
    return _list_users(search_term)


@app.put("/api/users/toggleBlock/{user_id}", tags=["Users"], summary="Toggle user block status (admin only)")
def toggle_block(user_id: str, caller: CallerIdentity = Depends(require_admin)):
    if user_id == caller.id:
        raise HTTPException(400, "Can't block yourself!")
    user = get_document_by_id("user", user_id)
    if not user:
        raise HTTPException(404, "User not found")
    blocked = not user.get("is_blocked", False)
    update_document("user", user_id, {"is_blocked": blocked})
    logger.info(f"User {user_id} {'blocked' if blocked else 'unblocked'} by {caller.id}")
    return blocked


# ===================== Foods =====================
@app.get("/api/foods", tags=["Foods"], summary="Get all foods")
def list_foods():
    return get_documents("food", sort=[("name", 1)])


@app.post("/api/foods", tags=["Foods"], summary="Add new food (admin only)")
def create_food(payload: Food, _: CallerIdentity = Depends(require_admin)):
    food_id = create_document("food", payload)
    return get_document_by_id("food", food_id)


@app.put("/api/foods", tags=["Foods"], summary="Update food (admin only)")
def update_food(payload: FoodUpdate, _: CallerIdentity = Depends(require_admin)):
    ok = update_document("food", payload.id, Food(**payload.model_dump(exclude={"id"})))
    if not ok:
        raise HTTPException(404, "Food not found")
    return get_document_by_id("food", payload.id)


@app.delete("/api/foods/{food_id}", tags=["Foods"], summary="Delete food (admin only)")
def delete_food(food_id: str, _: CallerIdentity = Depends(require_admin)):
    ok = delete_document("food", food_id)
    if not ok:
        raise HTTPException(404, "Food not found")
    return {"deleted": True}


@app.get("/api/foods/tags", tags=["Foods"], summary="Get all food tags with counts")
def list_tags():
    tags = aggregate("food", [
        {"$unwind": "$tags"},
        {"$group": {"_id": "$tags", "count": {"$sum": 1}}},
        {"$project": {"_id": 0, "name": "$_id", "count": "$count"}},
        {"$sort": {"count": -1, "name": 1}},
    ])
    return [{"name": "All", "count": count_documents("food")}] + tags


@app.get("/api/foods/search/{search_term}", tags=["Foods"], summary="Search foods by name")
def search_foods(search_term: str):
    return get_documents("food", {"name": {"$regex": re.escape(search_term), "$options": "i"}}, sort=[("name", 1)])


@app.get("/api/foods/tag/{tag}", tags=["Foods"], summary="Get foods by tag")
def foods_by_tag(tag: str):
    return get_documents("food", {"tags": tag}, sort=[("name", 1)])


@app.get("/api/foods/{food_id}", tags=["Foods"], summary="Get food by ID")
def get_food(food_id: str):
    food = get_document_by_id("food", food_id)
    if not food:
        raise HTTPException(404, "Food not found")
    return food


# ===================== Orders =====================
@app.post("/api/orders/create", tags=["Orders"], summary="Create a new order")
def create_order(payload: CreateOrderRequest, caller: CallerIdentity = Depends(get_current_caller)):
    profile = get_document_by_id("user", caller.id)
    return orders.create_order(caller, payload.items, payload.name, payload.address, profile=profile)


@app.put("/api/orders/pay", tags=["Orders"], summary="Pay for an order")
def pay_order(payload: PayRequest, caller: CallerIdentity = Depends(get_current_caller)):
    return orders.pay_order(caller, payload.payment_id)


@app.get("/api/orders/track/{order_id}", tags=["Orders"], summary="Track an order by ID")
def track_order(order_id: str, caller: CallerIdentity = Depends(get_current_caller)):
    return orders.track_order(caller, order_id)


@app.get("/api/orders/order/{order_id}", tags=["Orders"], summary="Get order details by ID")
def get_order(order_id: str, _: CallerIdentity = Depends(get_current_caller)):
    return orders.get_order(order_id)


@app.get("/api/orders/allstatus", tags=["Orders"], summary="Get all possible order statuses")
def all_statuses(_: CallerIdentity = Depends(get_current_caller)):
    return orders.all_statuses()


@app.put("/api/orders/{order_id}/status", tags=["Orders"], summary="Update order status (admin only)")
def update_order_status(order_id: str, payload: UpdateStatusRequest,
                        caller: CallerIdentity = Depends(require_admin)):
    order = orders.update_status(caller, order_id, payload.is_paid, payload.is_expired)
    return {
        "success": True,
        "message": f"Order status updated to {order['status']}",
        "data": order,
    }


@app.get("/api/orders", tags=["Orders"], summary="Get orders")
def list_orders(caller: CallerIdentity = Depends(get_current_caller)):
    return orders.list_orders(caller)


@app.get("/api/orders/{status}", tags=["Orders"], summary="Get orders by status")
def list_orders_by_status(status: OrderStatus, caller: CallerIdentity = Depends(get_current_caller)):
    return orders.list_orders(caller, status)


# ===================== Upload =====================
@app.post("/api/upload", tags=["Upload"], summary="Upload an image (admin only)")
def upload(image: Optional[UploadFile] = File(None), _: CallerIdentity = Depends(require_admin)):
    if image is None:
        raise HTTPException(400, "No file uploaded")
    data = image.file.read()
    if not data:
        raise HTTPException(400, "No file uploaded")
    return {"imageUrl": upload_image(io.BytesIO(data))}


# ===================== Error handlers =====================
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc) if settings.debug else "An internal server error occurred"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
