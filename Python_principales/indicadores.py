# -*- coding: utf-8 -*-
"""
Indicadores de ventas, cotizaciones y deuda a partir de los registros
cruzados y de la cuenta corriente conciliada.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from config_logging import log_detalle_proceso
from conciliacion_cuentas import bucket_aging
from modelos import (
    LedgerEntry, UnifiedQuoteRecord, BUCKETS_AGING, BUCKET_CORRIENTE,
    ESTADO_GANADA, ESTADO_GANADA_SIN_PRESUPUESTO, ESTADO_PERDIDA,
)

# ---------------- Parámetros del negocio ----------------
TOLERANCIA_CERO = 0.1
DIAS_AVISO = 25
DIAS_CRITICO = 37
CANTIDAD_TOP_DEUDORES = 5
ESTADOS_FINALES = (ESTADO_GANADA, ESTADO_GANADA_SIN_PRESUPUESTO, ESTADO_PERDIDA,
                   'EFECTUADA', 'RECHAZADA', 'CERRADA')

AUDITORIA_OK = 'MATCH'
AUDITORIA_DIFERENCIA = 'MISMATCH'
AUDITORIA_PENDIENTE = 'PENDING'


def _media_redondeada(valores) -> int:
    return int(round(float(np.mean(valores)))) if len(valores) else 0


def estado_cobranza(dias_desde_factura: int) -> str:
    if dias_desde_factura >= DIAS_CRITICO:
        return 'critical'
    if dias_desde_factura >= DIAS_AVISO:
        return 'warning'
    return 'ok'


def comparar_auditoria(calculado: float, esperado: Optional[float]) -> Dict[str, Any]:
    if esperado is None:
        return {'auditExpected': None, 'auditDiff': 0.0, 'auditStatus': AUDITORIA_PENDIENTE}
    diferencia = calculado - esperado
    estado = AUDITORIA_OK if abs(diferencia) < TOLERANCIA_CERO else AUDITORIA_DIFERENCIA
    return {'auditExpected': esperado, 'auditDiff': round(diferencia, 2), 'auditStatus': estado}


def resumir_clientes(clients: List[LedgerEntry], audit: Optional[Dict[str, float]] = None,
                     hoy: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Un resumen por cliente: deuda, facturas, atraso, aging, estado de
    cobranza y comparación contra el TOTAL DEUDA de la hoja.

    Un cliente con deuda <= 0.1 queda Corriente, con 0 días y estado ok
    aunque tenga facturas viejas compensadas.
    """
    hoy = hoy or date.today()
    audit = audit or {}
    resumen = []

    por_cliente: Dict[str, List[LedgerEntry]] = {}
    for mov in clients:
        por_cliente.setdefault(mov.client or 'Sin Nombre', []).append(mov)

    for cliente, movs in por_cliente.items():
        abiertas = [m for m in movs if m.amount > 0]
        deuda = float(sum(m.amount for m in abiertas))
        saldo = float(sum(m.amount for m in movs))

        max_vencido = max((m.days_overdue for m in abiertas), default=0)
        max_desde_factura = max(((hoy - m.date).days for m in abiertas), default=0)
        estado = estado_cobranza(max_desde_factura)
        bucket = bucket_aging(max_vencido)

        if deuda <= TOLERANCIA_CERO:
            max_vencido = 0
            max_desde_factura = 0
            estado = 'ok'
            bucket = BUCKET_CORRIENTE

        fila = {
            'client': cliente,
            'totalDebt': round(deuda, 2),
            'netBalance': round(saldo, 2),
            'invoiceCount': len(movs),
            'openInvoices': len(abiertas),
            'avgPaymentDelay': movs[0].avg_payment_delay,
            'maxDaysOverdue': max_vencido,
            'maxDaysSinceInvoice': max_desde_factura,
            'agingBucket': bucket,
            'status': estado,
        }
        # El TOTAL DEUDA de la planilla es el saldo neto de la cuenta
        fila.update(comparar_auditoria(saldo, audit.get(cliente)))
        resumen.append(fila)

    return resumen


def reporte_auditoria(resumen: List[Dict[str, Any]], audit: Dict[str, float]) -> List[Dict[str, Any]]:
    """Una fila por hoja con TOTAL DEUDA, tenga o no movimientos leídos."""
    saldos = {r['client']: r['netBalance'] for r in resumen}
    filas = []
    for hoja, esperado in audit.items():
        calculado = saldos.get(hoja, 0.0)
        fila = {'sheet': hoja, 'computed': calculado}
        fila.update(comparar_auditoria(calculado, esperado))
        filas.append(fila)
    return filas


def tendencia_mensual(quotes: List[UnifiedQuoteRecord]) -> List[Dict[str, Any]]:
    """Ingresos (monto de venta de las ganadas) y conteos por mes AAAA-MM."""
    con_fecha = [q for q in quotes if q.date]
    if not con_fecha:
        return []
    df = pd.DataFrame({
        'month': [q.date.strftime('%Y-%m') for q in con_fecha],
        'won': [q.is_won for q in con_fecha],
        'sale_amount': [q.sale_amount for q in con_fecha],
    })
    df['revenue'] = np.where(df['won'], df['sale_amount'], 0.0)
    agrupado = df.groupby('month').agg(
        revenue=('revenue', 'sum'),
        wonCount=('won', 'sum'),
        totalCount=('won', 'size'),
    ).reset_index().sort_values('month')
    return [
        {'month': r.month, 'revenue': float(r.revenue), 'wonCount': int(r.wonCount),
         'totalCount': int(r.totalCount)}
        for r in agrupado.itertuples(index=False)
    ]


def ventas_por_anio(quotes: List[UnifiedQuoteRecord]) -> Dict[int, float]:
    ganadas = [q for q in quotes if q.is_won and q.date]
    if not ganadas:
        return {}
    serie = pd.Series([q.sale_amount for q in ganadas], index=[q.date.year for q in ganadas])
    return {int(anio): float(total) for anio, total in serie.groupby(level=0).sum().items()}


def calcular_kpis(quotes: List[UnifiedQuoteRecord], clients: List[LedgerEntry],
                  audit: Optional[Dict[str, float]] = None, hoy: Optional[date] = None) -> Dict[str, Any]:
    hoy = hoy or date.today()
    audit = audit or {}

    # Ventas: sólo el monto realmente vendido (A COBRAR SIN IVA)
    ganadas = [q for q in quotes if q.is_won]
    total_ventas = float(sum(q.sale_amount for q in ganadas))

    pipeline = float(sum(q.amount for q in quotes))
    pipeline_activo = float(sum(q.amount for q in quotes if q.status not in ESTADOS_FINALES))
    conversion = (len(ganadas) / len(quotes) * 100) if quotes else 0.0

    abiertas = [c for c in clients if c.amount > 0]
    deuda_total = float(sum(c.amount for c in abiertas))
    saldo_neto = float(sum(c.amount for c in clients))
    atrasadas = [c.days_overdue for c in abiertas if c.days_overdue > 0]

    aging = {bucket: 0.0 for bucket in BUCKETS_AGING}
    for c in abiertas:
        aging[c.aging_bucket] = aging.get(c.aging_bucket, 0.0) + c.amount

    resumen = resumir_clientes(clients, audit, hoy)
    top = sorted((r for r in resumen if r['totalDebt'] > TOLERANCIA_CERO),
                 key=lambda r: r['totalDebt'], reverse=True)[:CANTIDAD_TOP_DEUDORES]

    kpi = {
        'sales': {
            'totalSales': total_ventas,
            'revenueTrend': tendencia_mensual(quotes),
            'salesByYear': ventas_por_anio(quotes),
        },
        'quotes': {
            'pipelineValue': pipeline,
            'activePipeline': pipeline_activo,
            'conversionRate': conversion,
            'count': len(quotes),
        },
        'debt': {
            'totalDebt': deuda_total,
            'netBalance': saldo_neto,
            'averageDaysDelinquent': _media_redondeada(atrasadas),
            'aging': aging,
            'clients': resumen,
            'topDebtors': top,
        },
        'audit': reporte_auditoria(resumen, audit),
    }

    log_detalle_proceso("KPI", "RESUMEN", {
        "ventas": round(total_ventas, 2),
        "pipeline": round(pipeline, 2),
        "conversion_%": round(conversion, 1),
        "deuda_total": round(deuda_total, 2),
        "clientes": len(resumen),
    })
    return kpi
