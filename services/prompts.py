# 提示词 json 加载（config/*.json）

import json
import logging
import os

from fastapi import HTTPException

logger = logging.getLogger("uvicorn.error")

CONFIG_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config")


def load_prompts(name: str) -> dict:
    # 每次请求都重新读取，修改 json 后直接生效
    cfg_path = os.path.join(CONFIG_DIR, f"{name}.json")
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        logger.exception("Failed to load %s json", name)
        raise HTTPException(status_code=500, detail=f"{name} json 加载失败")


def join_lines(value) -> str:
    """提示词可以写成字符串或字符串数组（便于在 json 里分行）"""
    if isinstance(value, list):
        return "\n".join(str(v) for v in value)
    if value is None:
        return ""
    return str(value)
