import os
from dotenv import load_dotenv

# Load .env from project root (prioritize .env.sandbox for testing)
basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
sandbox_env = os.path.join(basedir, '.env.sandbox')
default_env = os.path.join(basedir, '.env')
env_path = sandbox_env if os.path.exists(sandbox_env) else default_env
load_dotenv(env_path)


class Config:
    # Base URLs (the API is unversioned)
    TASTYTRADE_PRODUCTION_URL = os.getenv('TASTYTRADE_PRODUCTION_URL', 'https://api.tastyworks.com')
    TASTYTRADE_SANDBOX_URL = os.getenv('TASTYTRADE_SANDBOX_URL', 'https://api.cert.tastyworks.com')
    TASTYTRADE_USE_SANDBOX = os.getenv('TASTYTRADE_USE_SANDBOX', 'True') == 'True'

    # Transport
    REQUEST_TIMEOUT = float(os.getenv('TASTYTRADE_REQUEST_TIMEOUT', 60))  # seconds
    POOL_MAXSIZE = int(os.getenv('TASTYTRADE_POOL_MAXSIZE', 10))

    # Session: tokens closer than this to expiry are treated as expired
    SESSION_EXPIRY_MARGIN = float(os.getenv('TASTYTRADE_SESSION_EXPIRY_MARGIN', 60))  # seconds
    SESSION_FALLBACK_LIFETIME = float(os.getenv('TASTYTRADE_SESSION_FALLBACK_LIFETIME', 24 * 3600))

    # Cancel-replace reconciliation
    RECONCILE_ATTEMPTS = int(os.getenv('TASTYTRADE_RECONCILE_ATTEMPTS', 3))
    RECONCILE_BASE_DELAY = float(os.getenv('TASTYTRADE_RECONCILE_BASE_DELAY', 0.5))  # x attempt

    @staticmethod
    def get_base_url(use_sandbox=None):
        """Resolve the API base URL.

        Falls back to TASTYTRADE_USE_SANDBOX when use_sandbox is None.
        """
        if use_sandbox is None:
            use_sandbox = Config.TASTYTRADE_USE_SANDBOX
        return Config.TASTYTRADE_SANDBOX_URL if use_sandbox else Config.TASTYTRADE_PRODUCTION_URL
