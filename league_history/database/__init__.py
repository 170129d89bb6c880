# Database module (cache backend storage)
from .connection import build_engine, get_engine, get_session_factory, init_db, session_scope
from .models import Base, CachedResponse
