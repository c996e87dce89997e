"""
Porte de maintenance par store.

Chaque store possede sa propre porte (pas d'etat global). Une passe de
maintenance s'execute au plus une fois par intervalle : verification sans
verrou, prise du verrou, re-verification, passe, horodatage.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from deckcache.utils.helpers import Clock, utc_now

MaintenancePass = Callable[[], Awaitable[None]]

DEFAULT_MAINTENANCE_INTERVAL = timedelta(minutes=10)


class MaintenanceGate:
    """
    Limiteur de frequence des passes de maintenance.

    Example:
        gate = MaintenanceGate(interval=timedelta(minutes=10))
        await gate.run_if_due(store.run_maintenance)
    """

    def __init__(
        self,
        interval: timedelta = DEFAULT_MAINTENANCE_INTERVAL,
        clock: Clock = utc_now,
        name: str = "store",
    ) -> None:
        self._interval = interval
        self._clock = clock
        self._name = name
        self._last_run: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    def is_due(self) -> bool:
        if self._last_run is None:
            return True
        return self._clock() - self._last_run >= self._interval

    async def run_if_due(self, maintenance: MaintenancePass) -> bool:
        """
        Execute la passe si l'intervalle est ecoule.

        Returns:
            True si la passe a ete executee par cet appel
        """
        if not self.is_due():
            return False
        async with self._lock:
            if not self.is_due():
                return False
            await self._run(maintenance)
            return True

    async def run_now(self, maintenance: MaintenancePass) -> None:
        """Execute la passe immediatement (apres un changement de reglages)."""
        async with self._lock:
            await self._run(maintenance)

    async def _run(self, maintenance: MaintenancePass) -> None:
        # Best-effort : une passe en echec ne bloque ni la requete ni la suivante
        try:
            await maintenance()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Maintenance {self._name} en echec: {e}")
        self._last_run = self._clock()
