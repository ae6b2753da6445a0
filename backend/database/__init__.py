from .connection import engine, AsyncSessionLocal, init_db, close_db, build_engine, Base

__all__ = [
    'engine', 'AsyncSessionLocal', 'init_db', 'close_db', 'build_engine', 'Base',
]
