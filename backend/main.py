import logging

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import app_context
from backend.app.routes.orders import router as orders_router
from backend.config import MarketplaceConfig, load_config


load_dotenv()

CONFIG: MarketplaceConfig = load_config()

logger = logging.getLogger("marketplace")


def get_conn():
    return psycopg2.connect(**CONFIG.db_connect_kwargs())


app_context.configure(config=CONFIG, get_conn=get_conn)

app = FastAPI(title="3D Asset Marketplace API")

# Storefront and admin front-ends
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CONFIG.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_router)


@app.on_event("startup")
async def announce_startup() -> None:
    logger.info(
        "Marketplace API starting db=%s:%s/%s download_ttl_days=%s callback_secret=%s",
        CONFIG.db_host,
        CONFIG.db_port,
        CONFIG.db_name,
        CONFIG.download_ttl_days,
        "configured" if CONFIG.payment_callback_secret else "open",
    )


@app.get("/api/healthz")
def healthz():
    return {"status": "ok"}


# run: uvicorn backend.main:app --host 127.0.0.1 --port 8000 --reload
