import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "shelf-proxy")

PROXY_TARGET_URL = os.environ.get("PROXY_TARGET_URL", "")
PROXY_NAME = os.environ.get("PROXY_NAME", "shelf_proxy")
PROXY_BASE_PATH = os.environ.get("PROXY_BASE_PATH", "").rstrip("/")
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


def _parse_otlp_headers(raw: str) -> dict:
    headers: dict = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if "=" in entry:
            key, val = entry.split("=", 1)
            if key.strip():
                headers[key.strip()] = val.strip()
    return headers


OTLP_HEADER_MAP = _parse_otlp_headers(OTLP_HEADERS)
