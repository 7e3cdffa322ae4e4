# tests/conftest.py
import os

# Point the engine at a throwaway database before unimeet.db.session is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_unimeet.db")
os.environ.setdefault("HOLD_TTL_MINUTES", "5")
