# -*- coding: utf-8 -*-
"""
Avisos de cobranza: arma el resumen de deuda de cada cliente y lo entrega
a un enviador externo (por ejemplo una función HTTP que manda el mail).
"""

import os
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests

from config_logging import logger, log_detalle_proceso, log_error_proceso
from modelos import LedgerEntry
from normalizadores import formato_moneda_ar

TOLERANCIA_CERO = 0.1
URL_AVISOS = os.environ.get("COBRANZAS_URL_AVISOS", "")
TIMEOUT_AVISOS = 10


class AvisoError(Exception):
    """El servicio de avisos respondió, pero rechazó el envío."""


def construir_resumen_deuda(cliente: Dict[str, Any], movimientos: List[LedgerEntry],
                            hoy: Optional[date] = None) -> Dict[str, Any]:
    """
    Resumen para el cuerpo del aviso. Sólo se listan comprobantes con
    saldo mayor a 0.1; `days` son los días desde la emisión.
    """
    hoy = hoy or date.today()
    propios = [m for m in movimientos if m.client == cliente['client']]
    pendientes = sorted((m for m in propios if m.amount > TOLERANCIA_CERO),
                        key=lambda m: m.date)
    return {
        'totalFormatted': formato_moneda_ar(cliente['totalDebt']),
        'invoiceCount': len(propios),
        'invoices': [
            {
                'number': m.number,
                'date': m.date.isoformat(),
                'days': (hoy - m.date).days,
                'amount': round(m.amount, 2),
            }
            for m in pendientes
        ],
    }


def seleccionar_candidatos(clientes: List[Dict[str, Any]],
                           contactos: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Clientes con atraso, deuda y email cargado."""
    return [
        c for c in clientes
        if c['status'] != 'ok'
        and (contactos.get(c['client']) or {}).get('contact_email')
        and c['totalDebt'] > TOLERANCIA_CERO
    ]


def enviar_avisos(candidatos: List[Dict[str, Any]], contactos: Dict[str, Dict[str, Any]],
                  enviar: Callable[[str, str, Dict[str, Any]], Any],
                  movimientos: Optional[List[LedgerEntry]] = None,
                  hoy: Optional[date] = None) -> Dict[str, Any]:
    """
    Envía un aviso por cliente. Una falla no corta el lote: se cuenta y se
    registra en el log.
    """
    movimientos = movimientos or []
    resultado = {'enviados': 0, 'fallidos': 0, 'errores': []}

    for cliente in candidatos:
        nombre = cliente['client']
        email = (contactos.get(nombre) or {}).get('contact_email')
        try:
            enviar(email, nombre, construir_resumen_deuda(cliente, movimientos, hoy))
            resultado['enviados'] += 1
        except Exception as e:
            resultado['fallidos'] += 1
            resultado['errores'].append({'client': nombre, 'error': str(e)})
            log_error_proceso("AVISOS", e, contexto=nombre)

    log_detalle_proceso("AVISOS", "LOTE", {"enviados": resultado['enviados'],
                                           "fallidos": resultado['fallidos']})
    return resultado


class EnviadorHttp:
    """Publica {email, clientName, debtDetails} en el endpoint de avisos."""

    def __init__(self, url: str = URL_AVISOS, token: Optional[str] = None, timeout: int = TIMEOUT_AVISOS):
        if not url:
            raise ValueError("Falta la URL del servicio de avisos (COBRANZAS_URL_AVISOS)")
        self.url = url
        self.token = token
        self.timeout = timeout

    def __call__(self, email: str, cliente: str, detalle: Dict[str, Any]) -> Dict[str, Any]:
        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"

        response = requests.post(
            self.url,
            json={'email': email, 'clientName': cliente, 'debtDetails': detalle},
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json() if response.content else {}

        # Errores de aplicación llegan como 200 con success: false
        if isinstance(data, dict) and data.get('success') is False:
            raise AvisoError(data.get('error') or 'Error desconocido del servidor')

        logger.info(f"[AVISOS] Aviso enviado a {cliente} ({email})")
        return data
