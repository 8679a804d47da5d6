import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Flask
    SECRET_KEY: str = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')
    ENV: str = os.getenv('FLASK_ENV', 'development')
    DEBUG: bool = os.getenv('FLASK_DEBUG', 'True').lower() == 'true'
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()
    CORS_ORIGINS: str = os.getenv('CORS_ORIGINS', '*')

    # Storage backend: 'memory' (process-local) or 'supabase'
    STORAGE_BACKEND: str = os.getenv('STORAGE_BACKEND', 'memory').lower()

    # Supabase
    SUPABASE_URL: str = os.getenv('SUPABASE_URL', '')
    SUPABASE_KEY: str = os.getenv('SUPABASE_KEY', '')
    SUPABASE_DIDS_TABLE: str = os.getenv('SUPABASE_DIDS_TABLE', 'dids')
    SUPABASE_CREDENTIALS_TABLE: str = os.getenv('SUPABASE_CREDENTIALS_TABLE', 'verifiable_credentials')


config = Config()
