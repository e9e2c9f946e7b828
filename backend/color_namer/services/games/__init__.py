"""Game domain services: colors, palettes, scoring and the session engine.

Routes and socket handlers go through ``engine.GameEngine``; everything
below it works on plain ``GameState`` objects and knows nothing about
Flask or Socket.IO.
"""
