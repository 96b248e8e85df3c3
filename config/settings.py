"""
MediGuard 订单服务 - 统一配置管理
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# 项目根目录
PROJECT_ROOT = Path(os.getenv("ORDER_SERVICE_HOME", Path(__file__).resolve().parent.parent))

# 加载环境变量
env_file = PROJECT_ROOT / "config" / ".env"
if env_file.exists():
    load_dotenv(env_file)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# 基础路径配置
PATHS = {
    "project_root": PROJECT_ROOT,
    "data_dir": PROJECT_ROOT / "data",
    "order_db": Path(os.getenv("ORDER_DB_PATH", PROJECT_ROOT / "data" / "orders.sqlite")),
}

# API配置
API_CONFIG = {
    "host": os.getenv("HOST", "0.0.0.0"),
    "port": int(os.getenv("PORT", 8000)),
    "workers": int(os.getenv("WORKERS", 1)),
    "log_level": os.getenv("LOG_LEVEL", "INFO")
}

# 数据库配置
DATABASE_CONFIG = {
    "path": str(PATHS["order_db"]),
    # 写锁等待时间（秒）
    "busy_timeout": float(os.getenv("DB_BUSY_TIMEOUT", 30)),
    "seed_catalog": _env_bool("DB_SEED_CATALOG", True)
}

# 支付网关配置
PAYMENT_CONFIG = {
    "provider": os.getenv("PAYMENT_PROVIDER", "simulated"),  # simulated 或 http
    "base_url": os.getenv("PAYMENT_SERVICE_URL", "http://localhost:5003"),
    "timeout": float(os.getenv("PAYMENT_TIMEOUT", 10)),
    "simulated_latency": float(os.getenv("PAYMENT_SIMULATED_LATENCY", 0.5))
}

# 药品目录配置
CATALOG_CONFIG = {
    "provider": os.getenv("CATALOG_PROVIDER", "sqlite"),  # sqlite 或 http
    "base_url": os.getenv("MEDICATION_SERVICE_URL", "http://localhost:5002"),
    "timeout": float(os.getenv("CATALOG_TIMEOUT", 5))
}

# 确保必要目录存在
PATHS["data_dir"].mkdir(parents=True, exist_ok=True)
