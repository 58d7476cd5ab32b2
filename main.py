from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.database import engine, Base
from shared.config.settings import settings

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models  # noqa: F401
from services.customer_service import models as customer_models  # noqa: F401
from services.product_service import models as product_models  # noqa: F401
from services.payment_service import models as payment_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401

from services.auth_service.main import auth_app
from services.customer_service.main import customer_app
from services.product_service.main import product_app
from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.notification_service.main import notification_app

API_PREFIX = "/api/v1"

app = FastAPI(title="ERP Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "erp", "status": "running"}


app.mount(f"{API_PREFIX}/auth", auth_app)
app.mount(f"{API_PREFIX}/customers", customer_app)
app.mount(f"{API_PREFIX}/products", product_app)
app.mount(f"{API_PREFIX}/orders", order_app)
app.mount(f"{API_PREFIX}/payments", payment_app)
app.mount(f"{API_PREFIX}/notifications", notification_app)
