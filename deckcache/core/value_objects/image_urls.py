"""
Construction des URLs d'images (posters, backdrops).

En mode DIRECT l'URL pointe vers le CDN TMDB ; en mode LOCAL_PROXY elle
pointe vers l'endpoint qui sert le cache d'images local.
"""

from dataclasses import dataclass
from typing import Optional

from deckcache.core.value_objects.metadata_settings import PosterMode


@dataclass(frozen=True)
class ImageUrlBuilder:
    """
    Objet valeur construisant les URLs d'images.

    Attributs:
        tmdb_image_base_url: Racine du CDN TMDB (ex: "https://image.tmdb.org/t/p/")
        proxy_base_url: Racine de l'endpoint local (ex: "/api/v1/tmdb/images")
    """

    tmdb_image_base_url: str = "https://image.tmdb.org/t/p/"
    proxy_base_url: str = "/api/v1/tmdb/images"

    def build(
        self,
        path: Optional[str],
        size: str,
        mode: PosterMode = PosterMode.DIRECT,
    ) -> Optional[str]:
        """
        Retourne l'URL de l'image, ou None si le chemin est vide.

        Example:
            builder.build("/abc.jpg", "w500") -> "https://image.tmdb.org/t/p/w500/abc.jpg"
        """
        if not path or not path.strip():
            return None
        normalized_path = path.strip()
        if not normalized_path.startswith("/"):
            normalized_path = "/" + normalized_path
        base = self.proxy_base_url if mode is PosterMode.LOCAL_PROXY else self.tmdb_image_base_url
        return f"{base.rstrip('/')}/{size.strip('/')}{normalized_path}"
