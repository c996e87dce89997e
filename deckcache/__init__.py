"""
deckcache - Cache borne et persistant devant les metadonnees de films TMDB.

Les requetes interactives de "swipe deck" sont servies depuis un pool
persistant par utilisateur, sans jamais attendre une API amont lente ou
limitee en debit.

Architecture : Hexagonale (Ports et Adaptateurs)
- core/ : Couche domaine (entites, ports, objets valeur)
- services/ : Couche application (deck, prechauffage, complement des details)
- adapters/ : Clients HTTP (pipeline TMDB) et CLI
- infrastructure/ : Persistance SQLite (cache de reponses, catalogue, images)
"""

__version__ = "0.1.0"
