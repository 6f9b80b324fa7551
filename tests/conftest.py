# -*- coding: utf-8 -*-
import os
import json
import time
import tempfile
from datetime import date, datetime
from io import BytesIO

# Logs y caché fuera del árbol del proyecto; debe ir antes de importar los módulos
_TMP = tempfile.mkdtemp(prefix="cobranzas_tests_")
os.environ["COBRANZAS_LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["COBRANZAS_CACHE_COTIZACIONES"] = os.path.join(_TMP, "cotizaciones.json")
os.environ["COBRANZAS_API_COTIZACIONES"] = "http://cotizaciones.invalid/oficial"

import pytest
from openpyxl import Workbook

from cotizacion_dolar import ServicioCotizaciones

HOY = date(2025, 3, 15)

ENCABEZADO_CUENTA = ['FECHA', 'TIPO COMP', 'NUMERO', 'IMPORTE', 'FECHA COBRO', 'OBS']


def libro_bytes(hojas, ocultas=()):
    """{titulo: [filas]} -> contenido .xlsx en memoria."""
    wb = Workbook()
    wb.remove(wb.active)
    for titulo, filas in hojas.items():
        ws = wb.create_sheet(titulo)
        for fila in filas:
            ws.append(list(fila))
        if titulo in ocultas:
            ws.sheet_state = 'hidden'
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def hoy():
    return HOY


@pytest.fixture
def armar_libro():
    return libro_bytes


@pytest.fixture
def libro_cotizaciones():
    presupuestos = [
        ['LISTADO DE PRESUPUESTOS'],
        [],
        ['Nº', 'FECHA', 'CLIENTE', 'DESCRIPCION', 'OBS', 'A FACTURAR', 'ESTADO', 'EQUIPO'],
        [1001, datetime(2025, 1, 10), 'ACME SA', 'Service', None, 150000, 'GANADA', 'Camion 1'],
        [1002, datetime(2025, 2, 15), 'Beta SRL', 'Repuestos', 'urgente', 'USD 1.000', 'PENDIENTE', None],
        [1003, datetime(2024, 12, 1), 'Gamma', 'Pintura', None, 50000, 'NO', None],
    ]
    encabezado_ventas = ['Nº', 'CLIENTE', 'FECHA DE OC', 'FECHA FACTURA', 'A COBRAR SIN IVA',
                         'COSTO', 'ESTADO', 'DESCRIPCION DEL TRABAJO']
    ventas_2024 = [
        encabezado_ventas,
        [1001, 'ACME SA', datetime(2025, 1, 20), datetime(2025, 1, 25), 120000, 80000,
         'COBRADO', 'Service completo'],
        [None, 'Delta SA', datetime(2024, 11, 5), None, 30000, 10000, None, 'Reparacion'],
    ]
    ventas_2025 = [
        encabezado_ventas,
        # Copia de la venta 1001 de la hoja anterior
        [1001, 'ACME SA', datetime(2025, 1, 20), datetime(2025, 1, 25), 120000, 80000,
         'COBRADO', 'Service completo'],
        [2050, 'Omega', datetime(2025, 3, 1), None, 45000, 20000, None, 'Instalacion'],
    ]
    contenido = libro_bytes({
        'PRESUPUESTOS': presupuestos,
        'VENTAS - CONCRETADAS 2024': ventas_2024,
        'VENTAS - CONCRETADAS 2025': ventas_2025,
    })
    return 'COTIZACIONES.xlsx', contenido


@pytest.fixture
def libro_cuentas():
    acme = [
        ['CUENTA CORRIENTE ACME SA'],
        ENCABEZADO_CUENTA,
        [datetime(2025, 1, 2), 'FACTURA', '0001-00001001', 100000, None, None],
        [datetime(2025, 2, 1), 'FACTURA', '0001-00001002', 50000, None, None],
        [datetime(2025, 2, 10), 'NC', '0003-00000005', 20000, None, 'APLICA FC 1002'],
        [datetime(2024, 12, 1), 'FACTURA', '0001-00000990', 30000, datetime(2024, 12, 20), None],
        [None, None, 'TOTAL DEUDA', 130000, None, None],
    ]
    beta = [
        ENCABEZADO_CUENTA,
        [datetime(2024, 10, 1), 'FACTURA', '0001-00000800', 40000, None, 'SALDADA'],
        [None, None, 'TOTAL DEUDA', 0, None, None],
    ]
    gamma = [
        ENCABEZADO_CUENTA,
        [datetime(2025, 1, 5), 'FACTURA', 'A-0500', 10000, None, None],
        [datetime(2025, 1, 20), 'PAGO', None, -4000, None, None],
        [None, None, 'TOTAL DEUDA', 5000, None, None],
    ]
    resumen = [
        ['CLIENTE', 'TOTAL DEUDA'],
        ['ACME SA', 130000],
    ]
    viejo = [
        ENCABEZADO_CUENTA,
        [datetime(2020, 1, 1), 'FACTURA', '0001-00000001', 999, None, None],
        [None, None, 'TOTAL DEUDA', 999, None, None],
    ]
    contenido = libro_bytes(
        {'ACME SA': acme, 'Beta SRL': beta, 'Gamma': gamma, 'RESUMEN': resumen, 'VIEJO': viejo},
        ocultas=('VIEJO',),
    )
    return 'CLIENTES.xlsx', contenido


@pytest.fixture
def cache_cotizaciones(tmp_path):
    ruta = tmp_path / "cotizaciones.json"
    ruta.write_text(json.dumps({
        'timestamp': time.time(),
        'data': [
            {'fecha': '2025-01-02', 'compra': 1000.0, 'venta': 1050.0},
            {'fecha': '2025-02-03', 'compra': 1020.0, 'venta': 1070.0},
            {'fecha': '2025-03-03', 'compra': 1040.0, 'venta': 1090.0},
        ],
    }), encoding='utf-8')
    return ruta


@pytest.fixture
def servicio_fijo(cache_cotizaciones):
    """Servicio cargado desde una caché vigente, sin red."""
    return ServicioCotizaciones(cache_file=cache_cotizaciones, url='http://cotizaciones.invalid').init()
