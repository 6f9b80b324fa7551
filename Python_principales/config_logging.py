# -*- coding: utf-8 -*-
"""
Configuración unificada de logging para el procesamiento de cotizaciones
y cuentas corrientes de clientes.
"""

import os
import logging
from pathlib import Path
from datetime import datetime

# Directorios
BASE_DIR = Path(__file__).resolve().parent
LOGS_DIR = Path(os.environ.get("COBRANZAS_LOG_DIR", BASE_DIR / "logs_unificados"))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Archivo de log unificado
UNIFIED_LOG_FILE = LOGS_DIR / "procesamiento_completo.log"

LOGGER_NAME = 'SISTEMA_COBRANZAS'

# Nivel de logging por tipo de incidencia
NIVELES_INCIDENCIA = {
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def setup_unified_logging():
    """Configura el sistema de logging unificado"""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Evitar handlers duplicados
    if logger.handlers:
        logger.handlers.clear()

    file_handler = logging.FileHandler(UNIFIED_LOG_FILE, encoding='utf-8')
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)

    # Formato sin fecha/hora para mejor legibilidad
    formatter = logging.Formatter(
        '[%(name)s] [%(levelname)s] %(message)s [%(filename)s:%(lineno)d]'
    )

    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def log_detalle_proceso(componente, proceso, detalles):
    """
    Registra detalles de un proceso en formato "k: v | k: v".

    Args:
        componente (str): Nombre del componente (PARSER, VENTAS, CONCILIACION, KPI)
        proceso (str): Nombre del proceso
        detalles (dict): Diccionario con detalles del proceso
    """
    logger = logging.getLogger(LOGGER_NAME)

    mensaje = f"[{componente}] [{proceso}] "
    mensaje += " | ".join([f"{k}: {v}" for k, v in detalles.items()])

    logger.info(mensaje)


def log_inicio_proceso(componente, archivo_entrada):
    """Registra el inicio de un proceso"""
    log_detalle_proceso(
        componente,
        "INICIO",
        {
            "archivo": archivo_entrada,
            "timestamp": datetime.now().strftime("%H:%M:%S")
        }
    )


def log_fin_proceso(componente, archivo_salida, estadisticas=None):
    """Registra la finalización de un proceso"""
    detalles = {
        "archivo_salida": archivo_salida,
        "timestamp": datetime.now().strftime("%H:%M:%S")
    }

    if estadisticas:
        detalles.update(estadisticas)

    log_detalle_proceso(componente, "FINALIZADO", detalles)


def log_error_proceso(componente, error, contexto=None):
    """Registra un error en el proceso"""
    logger = logging.getLogger(LOGGER_NAME)

    mensaje = f"[{componente}] [ERROR] {str(error)}"
    if contexto:
        mensaje += f" | Contexto: {contexto}"

    logger.error(mensaje)


def registrar_incidencias(incidencias):
    """Vuelca la lista de incidencias de una corrida al log unificado."""
    logger = logging.getLogger(LOGGER_NAME)
    for inc in incidencias:
        nivel = NIVELES_INCIDENCIA.get(inc.type, logging.INFO)
        logger.log(nivel, f"[INCIDENCIA] [{inc.sheet}] fila {inc.row}: {inc.message}")


# Inicializar logging al importar
logger = setup_unified_logging()
