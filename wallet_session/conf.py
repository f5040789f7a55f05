"""Default settings for Wallet Session.

Every value can be overridden through ``WALLET_SESSION_*`` environment
variables (see ``VaultConfig.from_env``).
"""
API_URL = 'https://domain-chain-backend.vercel.app'

# Storage keys for the local persistent store.
SESSION_KEY = 'domain_chain_session'
DASHBOARD_KEY = 'domain_chain_dashboard'

# Key derivation: fixed application-wide salt.
KDF_SALT = 'domain-chain-encryption-salt'
KDF_ITERATIONS = 100_000
MIN_KDF_ITERATIONS = 100_000

CIPHER_BACKEND = 'aesgcm'

MESSAGE_TEMPLATE = 'Domain Chain Authentication: {nonce}'

# seconds
DEBOUNCE_DELAY = 2.0
SAVED_GRACE = 3.0

# Directory of the durable local store; created on first use.
STORAGE_PATH = "~/.wallet_session"

# Endpoints of the remote authority.
NONCE_ENDPOINT = '/api/auth/nonce'
VERIFY_ENDPOINT = '/api/auth/verify'
DASHBOARD_ENDPOINT = '/api/user/dashboard'
