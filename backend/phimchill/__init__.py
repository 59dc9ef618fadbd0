"""PhimChill backend — movie catalog API over cached upstream movie listings."""

__version__ = "0.1.0"
