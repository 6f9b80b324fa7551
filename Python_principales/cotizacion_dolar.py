# -*- coding: utf-8 -*-
"""
Cotización histórica del dólar oficial (venta) para convertir montos a pesos.

El historial se descarga de argentinadatos y se guarda en un JSON con la
hora de descarga. Mientras el archivo tenga menos de una hora se usa sin
consultar la API; si la API falla se usa el archivo aunque esté vencido.
"""

import os
import json
import time
from bisect import bisect_right
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from config_logging import logger
from normalizadores import parse_excel_date

# Configuración
BASE_DIR = Path(__file__).parent.absolute()
API_URL = os.environ.get(
    "COBRANZAS_API_COTIZACIONES",
    "https://api.argentinadatos.com/v1/cotizaciones/dolares/oficial",
)
CACHE_FILE = Path(os.environ.get("COBRANZAS_CACHE_COTIZACIONES", BASE_DIR / "cotizaciones_dolar.json"))
CACHE_TTL = 60 * 60  # segundos
TIMEOUT_API = 10
MONEDA_LOCAL = 'ARS'


def obtener_historial_oficial(url: str = API_URL) -> List[Dict[str, Any]]:
    """
    Consulta el historial de cotizaciones.
    Formato: [{"fecha": "2011-01-03", "compra": 3.97, "venta": 4.01}, ...]
    """
    response = requests.get(url, timeout=TIMEOUT_API)
    response.raise_for_status()
    data = response.json()
    if not isinstance(data, list):
        raise ValueError("Respuesta de cotizaciones inválida: no es una lista")
    return data


def _normalizar_historial(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Descarta entradas sin fecha o sin venta y ordena por fecha."""
    historial = []
    for item in data:
        fecha = parse_excel_date(item.get('fecha')) if isinstance(item, dict) else None
        if fecha is None or item.get('venta') is None:
            continue
        historial.append({'fecha': fecha.isoformat(), 'compra': item.get('compra'),
                          'venta': float(item['venta'])})
    historial.sort(key=lambda x: x['fecha'])
    return historial


class ServicioCotizaciones:
    """Historial de cotizaciones con caché en archivo."""

    def __init__(self, cache_file: Path = CACHE_FILE, url: str = API_URL, ttl: int = CACHE_TTL):
        self.cache_file = Path(cache_file)
        self.url = url
        self.ttl = ttl
        self.history: List[Dict[str, Any]] = []
        self._fechas: List[date] = []

    def _cargar(self, historial: List[Dict[str, Any]]) -> None:
        self.history = historial
        self._fechas = [date.fromisoformat(x['fecha']) for x in historial]

    def _leer_cache(self) -> Optional[Dict[str, Any]]:
        if not self.cache_file.exists():
            return None
        try:
            with open(self.cache_file, 'r', encoding='utf-8') as f:
                cache = json.load(f)
            if not isinstance(cache, dict) or not isinstance(cache.get('data'), list):
                raise ValueError("formato de caché inválido")
            return cache
        except (OSError, ValueError) as e:
            logger.warning(f"[COTIZACIONES] Caché ilegible, se ignora: {e}")
            return None

    def _guardar_cache(self) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'w', encoding='utf-8') as f:
                json.dump({'timestamp': time.time(), 'data': self.history}, f, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"[COTIZACIONES] No se pudo guardar la caché: {e}")

    def init(self) -> "ServicioCotizaciones":
        """Carga el historial: caché vigente, API, o caché vencida como último recurso."""
        cache = self._leer_cache()
        if cache and time.time() - float(cache.get('timestamp', 0)) < self.ttl:
            self._cargar(_normalizar_historial(cache['data']))
            logger.info(f"[COTIZACIONES] Historial cargado desde caché ({len(self.history)} días)")
            return self

        try:
            self._cargar(_normalizar_historial(obtener_historial_oficial(self.url)))
            self._guardar_cache()
            logger.info(f"[COTIZACIONES] Historial descargado ({len(self.history)} días)")
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[COTIZACIONES] Error obteniendo cotizaciones: {e}")
            if cache:
                self._cargar(_normalizar_historial(cache['data']))
                logger.warning("[COTIZACIONES] Usando caché vencida")
            else:
                logger.warning("[COTIZACIONES] Sin historial: los montos en moneda extranjera valen 0")
        return self

    def get_rate(self, fecha: Any = None) -> float:
        """Venta del día o del último día anterior con dato; la más antigua si la fecha es previa."""
        if not self.history:
            return 0.0
        objetivo = parse_excel_date(fecha) if fecha is not None else None
        objetivo = objetivo or date.today()
        pos = bisect_right(self._fechas, objetivo)
        if pos == 0:
            return self.history[0]['venta']
        return self.history[pos - 1]['venta']

    def convert(self, monto: float, moneda: str, fecha: Any = None) -> float:
        if not monto:
            return 0.0
        if moneda == MONEDA_LOCAL:
            return monto
        # Toda moneda extranjera se convierte con el dólar oficial
        return monto * self.get_rate(fecha)

    def get_rate_for_display(self, fecha: Any = None) -> float:
        return self.get_rate(fecha)


def formato_cotizacion(valor, decimales=2):
    """'1.234,50' para mostrar en reportes."""
    if valor is None:
        return "N/A"
    try:
        num = float(valor)
        return "{:,.{}f}".format(num, decimales).replace(",", "X").replace(".", ",").replace("X", ".")
    except (ValueError, TypeError):
        return str(valor)
