"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan los adaptadores concretos.
- Permite invertir dependencias: los servicios dependen de abstracciones y
  se prueban con dobles sin lanzar procesos reales.
"""
