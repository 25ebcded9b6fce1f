"""引擎配置（通过 .env 覆盖）。"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# 优先加载项目根目录下的 .env
BASE_DIR = Path(__file__).resolve().parents[1]
load_dotenv(BASE_DIR / ".env")


def _to_int(value: str | None, default: int, *, minimum: int = 0) -> int:
    """安全解析整数环境变量。"""

    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


def _to_bool(value: str | None, default: bool = False) -> bool:
    """安全解析布尔环境变量。"""

    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "on", "yes"}


APP_NAME = os.getenv("APP_NAME", "PyFastCrud")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

API_PREFIX = os.getenv("API_PREFIX", "").strip().rstrip("/")
ENABLE_DOCS = _to_bool(os.getenv("ENABLE_DOCS"), default=True)

LIST_DEFAULT_LIMIT = _to_int(os.getenv("LIST_DEFAULT_LIMIT"), 30, minimum=1)
LIST_MAX_LIMIT = _to_int(os.getenv("LIST_MAX_LIMIT"), 1000, minimum=1)
LIST_DEFAULT_SORT_FIELD = os.getenv("LIST_DEFAULT_SORT_FIELD", "id").strip() or "id"

STRING_MAX_LENGTH = _to_int(os.getenv("STRING_MAX_LENGTH"), 255, minimum=1)

# 无鉴权 actor 的确认短语，必须逐字一致才允许构造
NO_SECURITY_PHRASE = os.getenv("NO_SECURITY_PHRASE", "I allow this guy to do what ever he want!!")

MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "pyfastcrud")
