"""Adaptateurs : pipeline HTTP TMDB et interface CLI."""
