"""
Issues d'un lookup amont.

Objets valeur immutables representant le resultat d'une lecture TMDB.
L'absence attendue (404, reponse illisible, panne transitoire) est une
valeur de retour, pas une exception.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    """Valeur trouvee et decodee."""

    value: T


@dataclass(frozen=True)
class NotFound:
    """L'API amont a repondu 404."""


@dataclass(frozen=True)
class Rejected:
    """Statut non transitoire autre que 404 (401, 403, 422...)."""

    status_code: int


@dataclass(frozen=True)
class Malformed:
    """Corps de reponse non decodable."""

    reason: str


@dataclass(frozen=True)
class TransientError:
    """Panne transitoire (timeout, transport, 5xx/429 apres epuisement des retries)."""

    reason: str


LookupOutcome = Union[Found[T], NotFound, Rejected, Malformed, TransientError]
