"""
config.py — Runtime Configuration for the Store Credit Service

All settings are read once from environment variables at import time.
Defaults are suitable for local development and docker-compose setups.
"""

import os

# Umgebung, in der Zahlungsarten gesucht werden (entspricht dem Deployment)
APP_ENV = os.environ.get("APP_ENV", "development")

# Externer Gift-Card-Service (REST)
GIFT_CARD_SERVICE_URL = os.environ.get("GIFT_CARD_SERVICE_URL", "http://gift_card_service:8002")

HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "5.0"))
HTTP_READ_TIMEOUT = float(os.environ.get("HTTP_READ_TIMEOUT", "8.0"))

LOG_FILE = os.environ.get("LOG_FILE", "store_credit_service.log")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
