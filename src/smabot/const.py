# src/smabot/const.py
"""
Constantes globales del paquete.

Este módulo contiene únicamente valores **estables** que forman parte del
contrato entre partes del sistema (formato de los CSVs exportados, tamaño
máximo del histórico de precios). Los parámetros ajustables por entorno
viven en `settings.py`.

Convención
----------
- Nombres en MAYÚSCULAS.
- Cambiar una constante de contrato es una decisión explícita: ajusta los tests.
"""

# =============================================================================
# Versión del esquema de salida (CSV de trades)
# =============================================================================
# Los tests (tests/test_trades_schema.py) esperan que valga 1. Si añades,
# renombras o eliminas columnas de `trades_dataframe()`, incrementa este número.
SCHEMA_VERSION = 1

# =============================================================================
# Histórico de precios
# =============================================================================
# Número máximo de puntos que conserva una PriceSeries. Al superarlo se
# descartan los más antiguos (FIFO).
MAX_HISTORY = 200

# Tipo de estrategia soportado por el motor.
STRATEGY_KIND = "SMA_CROSSOVER"
