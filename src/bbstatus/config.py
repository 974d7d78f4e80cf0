import os
import dotenv
import logging

dotenv.load_dotenv()

JENKINS_URL = os.environ.get("JENKINS_URL")

SOURCES_CONFIG = os.environ.get("SOURCES_CONFIG", "bbstatus.yml")

DISKCACHE_DIR = os.environ.get("DISKCACHE_DIR")

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "WARNING"))

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")

HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", 30))

DRY_RUN = os.environ.get("DRY_RUN", "false") == "true"

PUSH_GATEWAY = os.environ.get("PUSH_GATEWAY")
