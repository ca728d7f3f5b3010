import logging
from logging.handlers import RotatingFileHandler

from qvote.core.settings import get_settings

# Create logger
vote_logger = logging.getLogger("votes")
vote_logger.setLevel(logging.INFO)

# Prevent duplicate handlers
if not vote_logger.handlers:
    # Rotating file handler: max 5 MB per file, keep 3 backups
    file_handler = RotatingFileHandler(
        get_settings().vote_log_file, maxBytes=5*1024*1024, backupCount=3
    )
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    file_handler.setFormatter(formatter)
    vote_logger.addHandler(file_handler)
