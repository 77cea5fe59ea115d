import logging
import sys

from config import settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# pymongo logs every heartbeat at DEBUG
logging.getLogger("pymongo").setLevel(logging.WARNING)

logger = logging.getLogger("livestockmart")
logger.setLevel(settings.LOG_LEVEL.upper())
