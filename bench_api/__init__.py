"""Núcleo de agregación de telemetría para bancos de prueba de baterías."""

__version__ = "0.1.0"
