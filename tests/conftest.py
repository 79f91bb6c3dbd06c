import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("BREVO_API_KEY", "")
