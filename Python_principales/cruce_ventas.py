# -*- coding: utf-8 -*-
"""
Cruce de cotizaciones (PRESUPUESTOS) con ventas concretadas.

Cada cotización se une con la venta de igual número. Una misma venta
copiada en varias hojas de año se cuenta una sola vez: la identidad de la
venta es su ClaveContenido (número, cliente, monto, fecha).
"""

from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from config_logging import logger, log_detalle_proceso
from cotizacion_dolar import ServicioCotizaciones
from modelos import (
    ClaveContenido, Incidencia, NormalizedQuote, NormalizedSale, Origen,
    TipoIncidencia, UnifiedQuoteRecord, agregar_incidencia,
    ESTADO_GANADA, ESTADO_GANADA_SIN_PRESUPUESTO, ESTADO_PENDIENTE, ESTADO_PERDIDA,
)

# ---------------- Parámetros del negocio ----------------
MAX_AVISOS_DUPLICADOS = 20
PALABRAS_GANADA = ('GANADA', 'APROBADO', 'VENDIDO', 'OK')
PALABRAS_PERDIDA = ('NO', 'RECHAZADO', 'BAJA')


def normalizar_id(valor: str) -> str:
    return (valor or '').strip().upper()


def resolver_estado(estado_crudo: str, tiene_venta: bool) -> str:
    estado = (estado_crudo or '').upper()
    if tiene_venta or any(p in estado for p in PALABRAS_GANADA):
        return ESTADO_GANADA
    if any(p in estado for p in PALABRAS_PERDIDA):
        return ESTADO_PERDIDA
    return ESTADO_PENDIENTE


def fecha_conversion(estado: str, venta: Optional[NormalizedSale],
                     cotizacion: Optional[NormalizedQuote], hoy: date) -> date:
    """
    Ganadas: fecha de factura, si no la de cotización, si no hoy.
    Abiertas o perdidas: siempre hoy (el pipeline vale al cambio del día).
    """
    if not estado.startswith(ESTADO_GANADA):
        return hoy
    if venta is not None and venta.invoice_date:
        return venta.invoice_date
    if cotizacion is not None and cotizacion.date:
        return cotizacion.date
    return hoy


def crear_registro(cotizacion: Optional[NormalizedQuote], venta: Optional[NormalizedSale],
                   origen: Origen, servicio: ServicioCotizaciones, hoy: date) -> UnifiedQuoteRecord:
    if cotizacion is not None:
        estado_crudo = cotizacion.status.upper() or (ESTADO_GANADA if venta else ESTADO_PENDIENTE)
        estado = resolver_estado(cotizacion.status, venta is not None)
        monto = cotizacion.amount
        moneda = cotizacion.currency
    else:
        estado_crudo = ESTADO_GANADA
        estado = ESTADO_GANADA_SIN_PRESUPUESTO
        monto = 0.0
        moneda = venta.currency if venta else 'ARS'

    conversion = fecha_conversion(estado, venta, cotizacion, hoy)

    if cotizacion is not None:
        descripcion = cotizacion.description or '-'
    else:
        descripcion = venta.work_description or '-'

    if venta is not None:
        id_registro = cotizacion.id if cotizacion else (venta.quote_id or f"V-{venta.oc_number or 'SIN-REF'}")
    else:
        id_registro = cotizacion.id

    registro = UnifiedQuoteRecord(
        id=id_registro,
        source=origen.value,
        status=estado,
        raw_status=estado_crudo,
        date=(venta.effective_date if venta else None) or (cotizacion.date if cotizacion else None),
        client=(cotizacion.client if cotizacion else '') or (venta.client if venta else '') or 'Sin Cliente',
        description=descripcion,
        equipment=(cotizacion.equipment if cotizacion else '') or (venta.domain if venta else '') or '-',
        amount=monto,
        currency=moneda,
        amount_converted=servicio.convert(monto, moneda, conversion),
        exchange_rate_used=servicio.get_rate_for_display(conversion) if moneda == 'USD' else 1.0,
        conversion_date=conversion,
        is_sold=venta is not None,
    )

    if venta is not None:
        registro.sale_date = venta.invoice_date
        registro.oc_date = venta.oc_date
        registro.delivery_date = venta.delivery_date
        registro.payment_date = venta.payment_date
        registro.sale_amount = venta.receivable_real
        registro.cost = venta.cost
        registro.profit_amount = venta.profit_amount
        registro.profit_percent = venta.profit_percent
        registro.receivable_std = venta.receivable_std
        registro.receivable_real = venta.receivable_real
        registro.collection_status = venta.collection_status or '-'
        registro.oc_number = venta.oc_number or '-'
        registro.invoice_number = venta.invoice_number or '-'
        registro.final_description = venta.work_description or '-'
        registro.sale_domain = venta.domain or '-'
        registro.hours_quoted = venta.hours_quoted
        registro.hours_used = venta.hours_used
        registro.policy_index = venta.policy_index or '-'
        registro.policy_status = venta.policy_status or '-'
        registro.source_sheet = venta.source_sheet

    return registro


class _RegistroDuplicados:
    """Acumula ventas repetidas: monto omitido y avisos (con tope)."""

    def __init__(self, issues: List[Incidencia]):
        self.issues = issues
        self.monto = 0.0
        self.cantidad = 0

    def registrar(self, venta: NormalizedSale, clave: ClaveContenido) -> None:
        self.monto += clave.amount
        self.cantidad += 1
        logger.warning(f"[VENTAS] Venta duplicada omitida: {clave}")
        if self.cantidad <= MAX_AVISOS_DUPLICADOS:
            agregar_incidencia(
                self.issues, TipoIncidencia.WARNING, venta.source_sheet, venta.row,
                f"Venta Duplicada (Ignorada): {clave.amount:,.2f} - Ref: {clave.quote_id}",
                value=str(clave.amount),
            )


def cruzar_cotizaciones_ventas(cotizaciones: List[NormalizedQuote], ventas: List[NormalizedSale],
                               servicio: Optional[ServicioCotizaciones] = None,
                               hoy: Optional[date] = None,
                               issues: Optional[List[Incidencia]] = None
                               ) -> Tuple[List[UnifiedQuoteRecord], float]:
    """
    Devuelve (registros, monto de ventas duplicadas omitidas).

    Un registro por cotización con número, más uno por cada venta que
    ninguna cotización reclamó y cuyo contenido no se contó antes.
    """
    hoy = hoy or date.today()
    issues = issues if issues is not None else []
    servicio = servicio or ServicioCotizaciones()

    claves = [ClaveContenido.de_venta(v) for v in ventas]
    por_id: Dict[str, List[int]] = {}
    for i, venta in enumerate(ventas):
        if venta.quote_id:
            por_id.setdefault(normalizar_id(venta.quote_id), []).append(i)

    consumidas: Set[ClaveContenido] = set()
    reclamadas: Set[int] = set()
    duplicados = _RegistroDuplicados(issues)
    registros: List[UnifiedQuoteRecord] = []

    for cotizacion in cotizaciones:
        try:
            id_cot = normalizar_id(cotizacion.id)
            if not id_cot:
                agregar_incidencia(issues, TipoIncidencia.WARNING, 'PRESUPUESTOS', cotizacion.row,
                                   'Fila con datos pero sin ID de Cotización. Se omitió.')
                continue

            elegida = None
            for i in por_id.get(id_cot, []):
                if i in reclamadas:
                    continue
                reclamadas.add(i)
                if claves[i] in consumidas:
                    duplicados.registrar(ventas[i], claves[i])
                    continue
                consumidas.add(claves[i])
                elegida = ventas[i]
                break

            origen = Origen.MATCH if elegida else Origen.QUOTE_ONLY
            registros.append(crear_registro(cotizacion, elegida, origen, servicio, hoy))
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, 'PRESUPUESTOS', cotizacion.row,
                               f"Error procesando cotización: {e}")

    for i, venta in enumerate(ventas):
        if i in reclamadas:
            continue
        try:
            if claves[i] in consumidas:
                duplicados.registrar(venta, claves[i])
                continue
            consumidas.add(claves[i])
            registros.append(crear_registro(None, venta, Origen.SALE_ONLY, servicio, hoy))
            agregar_incidencia(issues, TipoIncidencia.INFO, venta.source_sheet, venta.row,
                               f"Venta (Cot #{venta.quote_id or '?'}) agregada sin Presupuesto original.")
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, venta.source_sheet, venta.row,
                               f"Error procesando venta huérfana: {e}")

    ordenar_por_fecha(registros)
    log_detalle_proceso("VENTAS", "CRUCE", {
        "cotizaciones": len(cotizaciones),
        "ventas": len(ventas),
        "registros": len(registros),
        "duplicadas": duplicados.cantidad,
        "monto_duplicado": round(duplicados.monto, 2),
    })
    return registros, duplicados.monto


def ordenar_por_fecha(registros: List[UnifiedQuoteRecord]) -> None:
    """Más recientes primero; los registros sin fecha al final."""
    registros.sort(key=lambda r: (r.date is None, -(r.date.toordinal() if r.date else 0)))
