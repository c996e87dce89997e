"""
Constantes globales pour deckcache.

Ce module contient les constantes partagees entre les couches:
- Parametres de requete consideres comme secrets (retires des cles de cache)
- Prefixe des cles du cache de reponses HTTP
- Bornes du rate limiter et de la pagination discover
"""

# Parametres de requete jamais persistes ni logges en clair
SECRET_QUERY_KEYS = frozenset({
    "api_key",
    "apikey",
    "token",
    "access_token",
    "refresh_token",
})

REDACTED = "[REDACTED]"

# Prefixe des cles du cache de reponses HTTP
HTTP_CACHE_KEY_PREFIX = "tmdb:http:"

# Rate limiter (requetes par seconde)
MIN_REQUESTS_PER_SECOND = 1
MAX_REQUESTS_PER_SECOND = 50
QUEUE_FACTOR = 10

# Pagination discover
MAX_DISCOVER_PAGE = 500
MAX_DISCOVER_LIMIT = 200
DISCOVER_PAGE_WINDOW = 5

# Statuts HTTP consideres comme transitoires (en plus des 5xx)
TRANSIENT_STATUS_CODES = frozenset({408, 429})

# Extensions d'images -> type de contenu
IMAGE_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
DEFAULT_IMAGE_CONTENT_TYPE = "application/octet-stream"
DEFAULT_IMAGE_EXTENSION = ".img"
DEFAULT_IMAGE_SIZE = "original"

# Longueur maximale des corps d'erreur repris dans les logs
MAX_LOGGED_BODY_CHARS = 800
