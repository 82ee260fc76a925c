import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Type

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from auth import create_access_token, get_current_user, get_password_hash, verify_password
from database import Database, create_document, get_db, serialize
from invoice import invoice_from_order, render_html, render_pdf
from schemas import LoginRequest, SignupRequest, Token, UpdateRequest, UserOut
from services import NotFoundError, OrderService, PayloadError, ProductService, ResourceService, SourceService
from stats import compute_stats

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing DATABASE_URL stops startup here
    database = Database.from_env()
    database.ensure_connected()
    app.state.database = database
    try:
        yield
    finally:
        database.close()


app = FastAPI(title="Reseller Back Office API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(PayloadError)
async def payload_error_handler(request: Request, exc: PayloadError):
    content = {"detail": exc.message}
    if exc.errors:
        content["errors"] = jsonable_encoder(exc.errors)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# Routes
@app.get("/")
def root():
    return {"message": "Reseller Back Office API is running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        db.ping()
        response["connection_status"] = "Connected"
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# Auth endpoints
@app.post("/auth/signup", status_code=201)
def signup(payload: SignupRequest, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    try:
        create_document(db, "user", {"email": email, "password_hash": get_password_hash(payload.password)})
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info("Signed up user %s", email)
    return {"message": "User created"}


@app.post("/auth/login", response_model=Token)
def login(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    expires = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token({"sub": str(user["_id"])}, expires)
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        access_token,
        max_age=int(expires.total_seconds()),
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return {"access_token": access_token, "token_type": "bearer"}


@app.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@app.get("/auth/me", response_model=UserOut)
def me(user=Depends(get_current_user)):
    return {"id": str(user["_id"]), "email": user["email"]}


# Resource endpoints (sources, products, orders)
def resource_router(prefix: str, service_cls: Type[ResourceService]) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")], dependencies=[Depends(get_current_user)])
    create_schema = service_cls.create_schema

    @router.get("")
    def list_items(db: Database = Depends(get_db)):
        return serialize(service_cls(db).list())

    @router.get("/{item_id}")
    def get_item(item_id: str, db: Database = Depends(get_db)):
        return serialize(service_cls(db).get(item_id))

    @router.post("", status_code=201)
    def create_item(payload: create_schema, db: Database = Depends(get_db)):
        return serialize(service_cls(db).create(payload))

    @router.put("")
    def update_item(payload: UpdateRequest, db: Database = Depends(get_db)):
        return serialize(service_cls(db).update(payload.id, payload.data))

    @router.delete("")
    def delete_item(id: str = Query(..., min_length=1), db: Database = Depends(get_db)):
        return service_cls(db).delete(id)

    return router


app.include_router(resource_router("/sources", SourceService))
app.include_router(resource_router("/products", ProductService))
app.include_router(resource_router("/orders", OrderService))


# Statistics
@app.get("/stats", dependencies=[Depends(get_current_user)])
def get_stats(db: Database = Depends(get_db)):
    try:
        return compute_stats(db)
    except Exception:
        logger.exception("Error fetching stats")
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")


# Invoices
@app.get("/invoices/{order_id}", response_class=HTMLResponse, dependencies=[Depends(get_current_user)])
def invoice_page(order_id: str, db: Database = Depends(get_db)):
    order = OrderService(db).get(order_id)
    return HTMLResponse(render_html(invoice_from_order(order)))


@app.get("/invoices/{order_id}/pdf", dependencies=[Depends(get_current_user)])
def invoice_pdf(order_id: str, db: Database = Depends(get_db)):
    invoice = invoice_from_order(OrderService(db).get(order_id))
    return Response(
        content=render_pdf(invoice),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice_{invoice.invoice_number}.pdf"'},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
