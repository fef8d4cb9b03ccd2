"""Logging utility for the application"""
import logging
import os
import sys

# Configure logging
log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# supabase-py logs every PostgREST round trip through httpx at INFO
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger('jobtrack_waitlist')


def format_fields(**fields) -> str:
    """Render key=value pairs in a stable order, skipping None values"""
    return ' '.join(f"{key}={value}" for key, value in sorted(fields.items()) if value is not None)


def log_event(event: str, level: int = logging.INFO, **fields):
    """Log a named event with key=value context, e.g. waitlist.rejected reason=rate_limit_hour"""
    rendered = format_fields(**fields)
    logger.log(level, f"{event} {rendered}" if rendered else event)


def log_error(message: str, error: Exception = None, traceback_str: str = None):
    """Log error with optional exception and traceback"""
    if error:
        logger.error(f"{message}: {str(error)}", exc_info=error)
    elif traceback_str:
        logger.error(f"{message}\n{traceback_str}")
    else:
        logger.error(message)

def log_warning(message: str):
    """Log warning"""
    logger.warning(message)

def log_info(message: str):
    """Log info"""
    logger.info(message)

def log_debug(message: str):
    """Log debug (only in development)"""
    logger.debug(message)
