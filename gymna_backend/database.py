"""Supabase client initialization."""
import logging
import os
from functools import lru_cache

from supabase import create_client, Client
from dotenv import load_dotenv

from gymna_backend.modules.errors import ServiceConfigurationError

logger = logging.getLogger(__name__)

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")


@lru_cache(maxsize=1)
def get_db() -> Client:
    """Return the shared Supabase client, creating it on first use."""
    if not SUPABASE_URL or not SUPABASE_KEY:
        logger.error("Supabase credentials not found in environment variables")
        raise ServiceConfigurationError()

    db = create_client(SUPABASE_URL, SUPABASE_KEY)
    logger.info("Supabase client connected")
    return db
