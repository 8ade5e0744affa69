import logging
import os

from fastapi import FastAPI
from routers.chat import router as chat_router
from routers.summary import router as summary_router

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

app = FastAPI(title="SparkLog (chat + daily summary)")

@app.get("/healthz")
def healthz():
    return {"ok": "health !"}

# 注册路由
app.include_router(chat_router)      # /api/chat
app.include_router(summary_router)   # /api/summary
