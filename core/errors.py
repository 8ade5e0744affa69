# 错误分类：把捕获到的异常归为固定的几类，并给出面向用户的中文提示

import json
from dataclasses import dataclass
from enum import Enum

import httpx
from fastapi import HTTPException

from core import config


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NETWORK = "network"
    QUOTA = "quota"
    PARSING = "parsing"
    SERVICE = "service"
    # 仅客户端 facade 使用
    NETWORK_CLIENT = "network_client"


ERROR_MESSAGES = {
    ErrorKind.AUTHENTICATION: "AI服务鉴权失败，API密钥无效或已过期，请检查服务器配置。",
    ErrorKind.PERMISSION: "没有访问该AI模型的权限，请检查账号权限设置。",
    ErrorKind.NETWORK: "连接AI服务超时或网络异常，请稍后重试。",
    ErrorKind.QUOTA: "AI服务调用额度已用尽或请求过于频繁，请稍后再试。",
    ErrorKind.PARSING: "AI返回的数据格式异常，暂时无法解析。",
    ErrorKind.SERVICE: "AI服务暂时不可用，请稍后重试。",
    ErrorKind.NETWORK_CLIENT: "网络连接失败或请求处理异常，请检查网络连接后重试。",
}


class SummaryParseError(ValueError):
    """模型输出无法解析为日结 JSON"""


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str


def error_text(exc: BaseException) -> str:
    if isinstance(exc, HTTPException):
        return f"{exc.status_code}: {exc.detail}"
    msg = str(exc)
    name = type(exc).__name__
    return f"{name}: {msg}" if msg else name


def _is_network(exc: BaseException, lowered: str) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    return "network" in lowered or "timeout" in lowered


def _is_parsing(exc: BaseException, text: str) -> bool:
    if isinstance(exc, (json.JSONDecodeError, SummaryParseError)):
        return True
    return "JSON" in text


def classify_error(exc: BaseException) -> ClassifiedError:
    """
    按固定顺序匹配，命中即返回：
      1. authentication: 401 / unauthorized / API key not valid
      2. permission:     403 / PERMISSION_DENIED
      3. network:        httpx 超时或网络异常 / network / timeout
      4. quota:          quota / limit / 429 / RESOURCE_EXHAUSTED
      5. parsing:        JSON 解析异常 / JSON
      6. service:        其余全部
    """
    text = error_text(exc)
    lowered = text.lower()

    if "401" in text or "unauthorized" in lowered or "api key not valid" in lowered:
        kind = ErrorKind.AUTHENTICATION
    elif "403" in text or "permission_denied" in lowered:
        kind = ErrorKind.PERMISSION
    elif _is_network(exc, lowered):
        kind = ErrorKind.NETWORK
    elif "quota" in lowered or "limit" in lowered or "429" in text or "resource_exhausted" in lowered:
        kind = ErrorKind.QUOTA
    elif _is_parsing(exc, text):
        kind = ErrorKind.PARSING
    else:
        kind = ErrorKind.SERVICE
    return ClassifiedError(kind=kind, message=ERROR_MESSAGES[kind])


def diagnostic_for(exc: BaseException) -> str | None:
    """原始错误文本只在非生产环境下暴露"""
    if config.is_production():
        return None
    return error_text(exc)
