# -*- coding: utf-8 -*-
from datetime import date, datetime

from conftest import ENCABEZADO_CUENTA
from conciliacion_cuentas import construir_movimientos
from lector_libros import (
    Regla, ContextoRelleno, REGLAS_COTIZACION, REGLAS_CUENTA, armar_encabezados,
    es_libro_cotizaciones, escanear_total_deuda, mapear_fila, parse_excel_files,
)
from modelos import RawLedgerRow


def _tipos(issues, tipo):
    return [i for i in issues if i.type == tipo]


# ---------------- Tablas de sinónimos ----------------
def test_regla_aplica():
    regla = Regla('id', empieza=('Nº',), excluye=('OC', 'FC'))
    assert regla.aplica('Nº PRESUPUESTO')
    assert not regla.aplica('Nº OC')
    assert not regla.aplica('CLIENTE')

    regla = Regla('profit_amount', contiene=('BENEFICIO',), tambien=('$',))
    assert regla.aplica('BENEFICIO$')
    assert not regla.aplica('BENEFICIO%')


def test_mapear_fila_cotizacion():
    claves = ['Nº', 'FECHA', 'CLIENTE', 'DESCRIPCION', 'OBS', 'A FACTURAR', 'ESTADO']
    valores = [1001, '05/01/2025', 'ACME', 'Service', 'urgente', '1.000', 'GANADA']
    datos = mapear_fila(claves, valores, REGLAS_COTIZACION)
    assert datos['id'] == 1001
    assert datos['date'] == '05/01/2025'
    assert datos['client'] == 'ACME'
    assert datos['observations'] == 'urgente'
    assert datos['amount'] == '1.000'
    assert datos['status'] == 'GANADA'


def test_mapear_fila_columna_vacia_no_pisa_valor():
    claves = ['IMPORTE', 'IMPORTE_1']
    datos = mapear_fila(claves, [500, None], REGLAS_CUENTA)
    assert datos['importe'] == 500


def test_mapear_fila_concatena_observaciones():
    claves = ['OBS', 'DETALLE']
    datos = mapear_fila(claves, ['APLICA', 'FC 1433'], REGLAS_CUENTA)
    assert datos['obs'] == 'APLICA FC 1433'


def test_armar_encabezados():
    assert armar_encabezados(['Fecha', None, 'Fecha', 'Importe']) == ['FECHA', 'COLUMNA_2', 'FECHA_1', 'IMPORTE']
    assert armar_encabezados(['A cobrar sin IVA'], compacto=True) == ['ACOBRARSINIVA']


def test_es_libro_cotizaciones():
    assert es_libro_cotizaciones(['Presupuestos', 'VENTAS - CONCRETADAS 2025'])
    assert not es_libro_cotizaciones(['ACME SA', 'RESUMEN'])


def test_escanear_total_deuda():
    filas = [
        ('FECHA', 'IMPORTE'),
        (None, 'Total Deuda:', '1.500,50'),
    ]
    assert escanear_total_deuda(filas) == 1500.5
    assert escanear_total_deuda([('FECHA', 'IMPORTE')]) is None


# ---------------- Relleno hacia abajo ----------------
def test_contexto_relleno_completa_fecha_y_numero():
    contexto = ContextoRelleno()
    anterior = RawLedgerRow(client='ACME', row=3, date=date(2025, 1, 2), type='FACTURA',
                            number='0001-1', amount=100.0)
    contexto.recordar(anterior)

    fila, completada = contexto.completar(RawLedgerRow(client='ACME', row=4, amount=50.0))
    assert completada
    assert fila.date == date(2025, 1, 2)
    assert fila.type == 'FACTURA'
    assert fila.number == '0001-1'


def test_contexto_relleno_pago_no_hereda_numero():
    contexto = ContextoRelleno(fecha=date(2025, 1, 2), tipo='FACTURA', numero='0001-1')
    fila, _ = contexto.completar(RawLedgerRow(client='ACME', row=4, amount=-50.0))
    assert fila.number == ''
    assert fila.date == date(2025, 1, 2)


def test_contexto_relleno_pago_en_positivo_no_hereda_numero():
    contexto = ContextoRelleno(fecha=date(2025, 1, 2), tipo='FACTURA', numero='0001-1')
    fila, _ = contexto.completar(RawLedgerRow(client='ACME', row=4, type='PAGO', amount=50.0))
    assert fila.number == ''
    assert fila.type == 'PAGO'
    assert fila.date == date(2025, 1, 2)


# ---------------- Libro de cotizaciones ----------------
def test_parse_libro_cotizaciones(libro_cotizaciones):
    dataset = parse_excel_files([libro_cotizaciones])

    assert [q.id for q in dataset.quotes] == ['1001', '1002', '1003']
    beta = dataset.quotes[1]
    assert beta.currency == 'USD'
    assert beta.amount == 1000.0
    assert beta.description == 'Repuestos - urgente'
    assert beta.date == date(2025, 2, 15)
    assert beta.row == 5

    assert len(dataset.sales) == 4
    venta = dataset.sales[0]
    assert venta.quote_id == '1001'
    assert venta.year == 2024
    assert venta.source_sheet == 'VENTAS - CONCRETADAS 2024'
    assert venta.oc_date == date(2025, 1, 20)
    assert venta.invoice_date == date(2025, 1, 25)
    assert venta.receivable_real == 120000.0
    assert venta.cost == 80000.0
    assert venta.collection_status == 'COBRADO'
    assert venta.work_description == 'Service completo'

    sin_id = dataset.sales[1]
    assert sin_id.quote_id.startswith('SIN-COT-VENTAS - CONCRETADAS 2024-')
    avisos = _tipos(dataset.issues, 'WARNING')
    assert any('sin Nº de Cotización' in i.message for i in avisos)
    assert dataset.ledger == []


def test_id_temporal_es_estable(libro_cotizaciones):
    primero = parse_excel_files([libro_cotizaciones])
    segundo = parse_excel_files([libro_cotizaciones])
    assert primero.sales[1].quote_id == segundo.sales[1].quote_id


# ---------------- Libro de cuentas ----------------
def test_parse_libro_cuentas(libro_cuentas):
    dataset = parse_excel_files([libro_cuentas])

    assert dataset.audit == {'ACME SA': 130000.0, 'Beta SRL': 0.0, 'Gamma': 5000.0}
    clientes = sorted({f.client for f in dataset.ledger})
    assert clientes == ['ACME SA', 'Beta SRL', 'Gamma']

    acme = [f for f in dataset.ledger if f.client == 'ACME SA']
    assert len(acme) == 4
    assert acme[0].number == '0001-00001001'
    assert acme[0].amount == 100000.0
    assert acme[0].row == 3
    assert acme[2].obs == 'APLICA FC 1002'
    assert acme[3].payment_date == date(2024, 12, 20)

    pago = [f for f in dataset.ledger if f.client == 'Gamma'][1]
    assert pago.amount == -4000.0
    assert pago.number.startswith('PAY-')


def test_libro_cuentas_relleno_y_pagos_multiples(armar_libro):
    contenido = armar_libro({'DELTA': [
        ENCABEZADO_CUENTA,
        [datetime(2025, 1, 2), 'FACTURA', '0001-00000100', 1000, '05/01/2025 Y 10/01/2025', None],
        [None, None, None, 200, None, None],
    ]})
    dataset = parse_excel_files([('delta.xlsx', contenido)])

    assert len(dataset.ledger) == 3
    primera, segunda, heredada = dataset.ledger
    assert primera.amount == 500.0
    assert segunda.amount == 500.0
    assert primera.payment_date == date(2025, 1, 5)
    assert segunda.payment_date == date(2025, 1, 10)
    assert '(Pago 1/2)' in primera.obs
    assert heredada.date == date(2025, 1, 2)
    assert heredada.number == '0001-00000100'
    assert heredada.amount == 200.0


def test_libro_cuentas_pagos_separados_con_ampersand(armar_libro):
    contenido = armar_libro({'DELTA': [
        ENCABEZADO_CUENTA,
        [datetime(2025, 1, 2), 'FACTURA', '0001-00000100', 1000, '05/01/2025 & 10/01/2025', None],
    ]})
    dataset = parse_excel_files([('delta.xlsx', contenido)])

    assert [(f.amount, f.payment_date) for f in dataset.ledger] == [
        (500.0, date(2025, 1, 5)),
        (500.0, date(2025, 1, 10)),
    ]


def test_libro_cuentas_pago_sin_numero_no_hereda_factura(armar_libro, hoy):
    contenido = armar_libro({'DELTA': [
        ENCABEZADO_CUENTA,
        [datetime(2025, 1, 2), 'FACTURA', '0001-00000100', 1000, None, None],
        [datetime(2025, 1, 9), 'PAGO', None, 300, None, None],
        [None, 'NC', None, 200, None, None],
    ]})
    dataset = parse_excel_files([('delta.xlsx', contenido)])

    factura, pago, nota = dataset.ledger
    assert factura.number == '0001-00000100'
    assert pago.type == 'PAGO'
    assert pago.number.startswith('PAY-')
    assert nota.type == 'NC'
    assert nota.date == date(2025, 1, 9)
    assert nota.number.startswith('PAY-')
    assert nota.number != pago.number

    movimientos = construir_movimientos(dataset.ledger, hoy, [])
    montos = {m.number: m.amount for m in movimientos}
    assert montos['0001-00000100'] == 1000.0
    assert montos[pago.number] == -300.0
    assert montos[nota.number] == -200.0


def test_libro_cuentas_prioridad_de_columnas_de_monto(armar_libro):
    contenido = armar_libro({'DELTA': [
        ['FECHA', 'TIPO COMP', 'NUMERO', 'IMPORTE', 'DEBE', 'HABER', 'SALDO'],
        [datetime(2025, 1, 2), 'FACTURA', '0001-1', 2500, 999, None, 2500],
        [datetime(2025, 1, 3), 'FACTURA', '0001-2', None, 700, None, 3200],
        [datetime(2025, 1, 9), 'RECIBO', 'R-1', None, None, 400, 2800],
        [datetime(2025, 1, 10), 'AJUSTE', 'A-1', None, None, None, 50],
    ]})
    dataset = parse_excel_files([('delta.xlsx', contenido)])

    assert [(f.number, f.amount) for f in dataset.ledger] == [
        ('0001-1', 2500.0),
        ('0001-2', 700.0),
        ('R-1', -400.0),
        ('A-1', 50.0),
    ]
    assert _tipos(dataset.issues, 'WARNING') == []


def test_libro_cuentas_monto_por_busqueda_en_toda_la_fila(armar_libro):
    contenido = armar_libro({'DELTA': [
        ['FECHA', 'TIPO COMP', 'NUMERO', 'IMPORTE', None, None],
        # El año suelto no cuenta como monto
        [datetime(2025, 1, 2), 'FACTURA', '0001-2', None, 2024, '2.500'],
    ]})
    dataset = parse_excel_files([('delta.xlsx', contenido)])

    assert [(f.number, f.amount) for f in dataset.ledger] == [('0001-2', 2500.0)]
    avisos = _tipos(dataset.issues, 'WARNING')
    assert len(avisos) == 1
    assert avisos[0].message.startswith('Monto tomado por búsqueda en toda la fila')
    assert avisos[0].sheet == 'DELTA'
    assert avisos[0].row == 2


def test_archivo_corrupto_es_critico_y_no_corta_el_lote(libro_cuentas):
    dataset = parse_excel_files([('roto.xlsx', b'esto no es un xlsx'), libro_cuentas])

    criticas = _tipos(dataset.issues, 'CRITICAL')
    assert len(criticas) == 1
    assert criticas[0].sheet == 'GENERAL'
    assert criticas[0].file == 'roto.xlsx'
    assert criticas[0].value
    assert len(dataset.ledger) == 7
