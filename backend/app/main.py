from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import datetime
import logging

from . import models, schemas, product_models, product_schemas
from .auth import new_api_token, require_user
from .config import get_settings
from .database import get_db, init_models
from .errors import StorefrontError
from .logging_config import configure_logging
from .pressmaster import build_quote_provider
from .donation_routes import router as donation_router
from .cause_routes import router as cause_router
from .order_routes import router as order_router
from .quote_routes import router as quote_router

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)
logger = logging.getLogger(__name__)

init_models()

app = FastAPI(title="Print Power Purpose API")

# resolved once; handlers read them from app.state
app.state.settings = settings
app.state.quote_provider = build_quote_provider(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    logger.error("Unhandled %s on %s: %s", exc.__class__.__name__, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.get('/')
def read_root():
    return {"message": "Print Power Purpose API running", "pressmaster_mode": app.state.quote_provider.mode}


@app.post('/api/v1/signup', response_model=schemas.SignupResult)
def create_signup(signup: schemas.SignupCreate, db: Session = Depends(get_db)):
    if db.query(models.User).filter(models.User.email == signup.email).first():
        raise HTTPException(status_code=409, detail='Email already registered')
    user = models.User(name=signup.name, email=signup.email, role=signup.role, api_token=new_api_token())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@app.get('/api/v1/products', response_model=List[product_schemas.Product])
def list_products(category: Optional[str] = None, db: Session = Depends(get_db)):
    q = db.query(product_models.Product)
    if category:
        q = q.filter(product_models.Product.category == category)
    return q.order_by(product_models.Product.id).all()


@app.get('/api/v1/products/{product_id}', response_model=product_schemas.Product)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = db.query(product_models.Product).filter(product_models.Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail='Product not found')
    return product


@app.get('/api/v1/notifications', response_model=List[schemas.Notification])
def list_notifications(db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    """Unread first, newest first"""
    items = db.query(models.Notification).filter(models.Notification.user_id == user.id).order_by(
        models.Notification.created_at.desc(), models.Notification.id.desc()
    ).all()
    return sorted(items, key=lambda n: n.read_at is not None)


@app.post('/api/v1/notifications/{id}/read', response_model=schemas.Notification)
def dismiss_notification(id: int, db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    n = db.query(models.Notification).filter(
        models.Notification.id == id,
        models.Notification.user_id == user.id,
    ).first()
    if not n:
        raise HTTPException(status_code=404, detail='Not found')
    if n.read_at is None:
        n.read_at = datetime.datetime.now(datetime.timezone.utc)
        db.commit()
        db.refresh(n)
    return n


app.include_router(donation_router)
app.include_router(cause_router)
app.include_router(order_router)
app.include_router(quote_router)
