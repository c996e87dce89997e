"""
Couche domaine (core).

Contient les entites metier, ports (interfaces abstraites), et objets valeur.
Cette couche n'a AUCUNE dependance vers l'infrastructure (httpx, SQLModel).

Sous-packages :
- entities/ : Films decouverts, films catalogues, cartes de deck, preferences
- ports/ : Contrats des caches, du client de metadonnees et du store
- value_objects/ : Issues de lookup et reglages du store
"""
