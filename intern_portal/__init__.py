"""Intern Portal - Backend API.

Serves intern accounts, authentication, resource bookings and holiday lookups.

Core concepts:
- Bookings are protected: every request must carry `Authorization: Bearer <jwt>`.
- Outside production the API runs as several supervised worker processes
  sharing one listening socket; crashed workers are replaced immediately.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
