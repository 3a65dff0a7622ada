"""
Improved Logging Configuration - Reduces noise and provides clear categories
"""

import logging
import os
import sys
from enum import Enum
from typing import Dict, Optional


class LogCategory(Enum):
    """Log categories for better organization"""
    API = "API"
    DATABASE = "DB"
    SECURITY = "SEC"
    ERROR = "ERROR"
    BUSINESS = "BIZ"


class SmartLogger:
    """Smart logger that reduces noise and provides structured output"""

    def __init__(self, name: str, category: LogCategory = None):
        self.logger = logging.getLogger(name)
        self.category = category or LogCategory.API
        self.name = name

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))

        self.verbose = os.getenv('LOG_VERBOSE', 'false').lower() == 'true'

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Setup log handlers with smart formatting"""
        console_handler = logging.StreamHandler(sys.stdout)

        if self.verbose:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                datefmt='%H:%M:%S'
            )
        else:
            formatter = logging.Formatter('[%(levelname)s] %(message)s')

        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

    def database_query(self, query_type: str, records: Optional[int] = None):
        """Log database operations"""
        if records is not None:
            self.logger.info(f"DB: {query_type} {records} records")
        else:
            self.logger.info(f"DB: {query_type}")

    def business_event(self, event: str, details: str = None):
        """Log business logic events"""
        if details:
            self.logger.info(f"BIZ: {event} - {details}")
        else:
            self.logger.info(f"BIZ: {event}")

    def security_event(self, event: str, details: str = None):
        """Log security events (always logged)"""
        if details:
            self.logger.warning(f"SEC: {event} - {details}")
        else:
            self.logger.warning(f"SEC: {event}")

    def error(self, message: str, exc_info: bool = False, context: Dict = None):
        """Log errors with context"""
        if context:
            context_str = " | ".join([f"{k}={v}" for k, v in context.items()])
            self.logger.error(f"ERROR: {message} | {context_str}", exc_info=exc_info)
        else:
            self.logger.error(f"ERROR: {message}", exc_info=exc_info)

    def info(self, message: str):
        self.logger.info(message)

    def debug(self, message: str):
        """Debug logging (only in verbose mode)"""
        if self.verbose:
            self.logger.debug(message)


def get_smart_logger(name: str, category: LogCategory = None) -> SmartLogger:
    """Get a smart logger instance"""
    return SmartLogger(name, category)


def configure_app_logging():
    """Configure application-wide logging settings"""
    # Suppress noisy third-party loggers
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('passlib').setLevel(logging.ERROR)

    # SQL echo is controlled by DATABASE_ECHO, keep the engine logger quiet otherwise
    if os.getenv('DATABASE_ECHO', 'false').lower() != 'true':
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
