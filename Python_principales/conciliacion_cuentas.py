# -*- coding: utf-8 -*-
"""
Conciliación de cuentas corrientes de clientes.

1. construir_movimientos: filas crudas -> LedgerEntry con signo, estado
   de cancelación, vencimiento y aging.
2. conciliar_movimientos: por cliente, aplica notas de crédito y pagos
   contra facturas abiertas (por referencia en las observaciones y
   después por monto), y calcula la demora promedio de pago.
"""

import re
from collections import OrderedDict
from dataclasses import replace
from datetime import date, timedelta
from typing import Dict, List, Optional

import numpy as np

from config_logging import logger, log_detalle_proceso
from modelos import (
    Incidencia, LedgerEntry, RawLedgerRow, TipoIncidencia, agregar_incidencia,
    es_tipo_credito, referencia_pago,
    BUCKET_CORRIENTE, BUCKET_30, BUCKET_60, BUCKET_90, BUCKET_MAS_90,
)

# ---------------- Parámetros del negocio ----------------
DIAS_VENCIMIENTO_DEFECTO = 30
UMBRAL_RESIDUO = 50.0          # saldo de factura que se considera cancelado tras aplicar una NC
TOLERANCIA_CREDITO = 1.0       # crédito remanente que se considera consumido
TOLERANCIA_MONTO_IGUAL = 5.0   # diferencia máxima para emparejar NC y factura sin referencia

PALABRAS_SALDADA = ('SALDADA', 'PAGAD', 'CANCEL', 'COMPEN')
MARCAS_REFERENCIA = ('APLICA', 'PAGO', 'FC', 'REF')
NUMEROS_VACIOS = ('', '-', '.')

ESTADO_ABIERTA = 'ABIERTA'
ESTADO_SALDADA = 'SALDADA'
ESTADO_PAGADA_POR_NC = 'PAGADA_POR_NC'
ESTADO_COMPENSADA = 'COMPENSADA'

RE_REFERENCIA = re.compile(r"(?:FACTURA|FACT|FC|NRO|NO)[\s.:º°#]*(\d[\d\-./]*)")
RE_NUMERO_SUELTO = re.compile(r"\d{4,8}")


def bucket_aging(dias_vencidos: int) -> str:
    if dias_vencidos <= 0:
        return BUCKET_CORRIENTE
    if dias_vencidos <= 30:
        return BUCKET_30
    if dias_vencidos <= 60:
        return BUCKET_60
    if dias_vencidos <= 90:
        return BUCKET_90
    return BUCKET_MAS_90


def construir_movimientos(filas: List[RawLedgerRow], hoy: Optional[date] = None,
                          issues: Optional[List[Incidencia]] = None) -> List[LedgerEntry]:
    """
    Convierte las filas crudas en movimientos.

    Las filas sin número de comprobante (salvo pagos, que reciben una
    referencia PAY-), sin fecha o cuyo número/tipo dice TOTAL se descartan.
    """
    hoy = hoy or date.today()
    issues = issues if issues is not None else []
    movimientos = []

    for idx, fila in enumerate(filas):
        try:
            mov = _construir_movimiento(fila, idx, hoy)
            if mov is not None:
                movimientos.append(mov)
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, fila.client or 'CLIENTES', fila.row,
                               f"Error procesando movimiento: {e}")

    log_detalle_proceso("CONCILIACION", "MOVIMIENTOS", {"filas": len(filas),
                                                        "movimientos": len(movimientos)})
    return movimientos


def _construir_movimiento(fila: RawLedgerRow, idx: int, hoy: date) -> Optional[LedgerEntry]:
    monto = float(fila.amount or 0.0)
    tipo = (fila.type or '').upper()

    # NC y pagos restan aunque la planilla los traiga en positivo
    if es_tipo_credito(tipo) and monto > 0:
        monto = -monto

    info = f"{fila.payment_info} {fila.obs}".upper()
    saldada = any(p in info for p in PALABRAS_SALDADA) or fila.payment_date is not None

    original = monto
    if saldada and monto > 0:
        monto = 0.0

    numero = (fila.number or '').strip()
    pago_manual = False
    if numero in NUMEROS_VACIOS and monto < 0:
        numero = referencia_pago(fila.client, fila.row)
        pago_manual = True

    if numero in NUMEROS_VACIOS:
        return None
    if 'TOTAL' in numero.upper() or 'TOTAL' in tipo:
        return None
    if fila.date is None:
        return None

    vencimiento = fila.due_date or fila.date + timedelta(days=DIAS_VENCIMIENTO_DEFECTO)
    dias_vencidos = max(0, (hoy - vencimiento).days)

    return LedgerEntry(
        id=f"{fila.client}-{idx}",
        client=fila.client,
        date=fila.date,
        amount=monto,
        original_amount=original,
        due_date=vencimiento,
        payment_date=fila.payment_date,
        type=tipo,
        number=numero,
        obs=fila.obs,
        row=fila.row,
        days_overdue=dias_vencidos,
        aging_bucket=bucket_aging(dias_vencidos),
        is_settled=saldada,
        is_manual_payment=pago_manual,
        estado=ESTADO_SALDADA if saldada and original > 0 else ESTADO_ABIERTA,
    )


def extraer_referencias(obs: str) -> List[str]:
    """
    Números de factura citados en un texto de observaciones.

    "APLICA FC 1433-34-35" -> ['1433', '1434', '1435']. Si no hay una
    referencia con marcador, toma cualquier número suelto de 4 a 8 dígitos.
    """
    texto = (obs or '').upper()
    candidatos: List[str] = []

    for m in RE_REFERENCIA.finditer(texto):
        partes = [p.strip('.') for p in re.split(r"[-/]", m.group(1))]
        base = partes[0]
        if len(base) <= 2:
            continue
        candidatos.append(base)
        for sufijo in partes[1:]:
            if not sufijo:
                continue
            if len(sufijo) < len(base):
                candidatos.append(base[:len(base) - len(sufijo)] + sufijo)
            else:
                candidatos.append(sufijo)

    if not candidatos:
        candidatos = RE_NUMERO_SUELTO.findall(texto)

    return list(OrderedDict.fromkeys(candidatos))


def _buscar_por_numero(movimientos: List[LedgerEntry], referencia: str, solo_abiertas: bool):
    for mov in movimientos:
        if solo_abiertas and mov.amount <= 0:
            continue
        if mov.number and str(mov.number).endswith(referencia):
            return mov
    return None


def _aplicar_credito(credito: LedgerEntry, facturas: List[LedgerEntry], saldadas: List[LedgerEntry],
                     issues: List[Incidencia]) -> float:
    """Aplica el crédito por referencia; devuelve el monto que queda sin aplicar."""
    restante = abs(credito.amount)
    obs = (credito.obs or '').upper()
    if not obs or not any(m in obs for m in MARCAS_REFERENCIA):
        return restante

    referencias = extraer_referencias(obs)
    if not referencias:
        return restante

    encontrada = False
    for ref in referencias:
        factura = _buscar_por_numero(facturas, ref, solo_abiertas=True)
        if factura is not None:
            encontrada = True
            aplicado = min(factura.amount, restante)
            factura.amount -= aplicado
            factura.applied_nc += aplicado
            restante -= aplicado
            if factura.amount <= UMBRAL_RESIDUO:
                factura.amount = 0.0
                factura.is_offset = True
                factura.estado = ESTADO_PAGADA_POR_NC
        elif _buscar_por_numero(saldadas, ref, solo_abiertas=False) is not None:
            # La factura ya estaba cancelada: el crédito se da por aplicado
            encontrada = True
            restante = 0.0

        if restante <= TOLERANCIA_CREDITO:
            break

    if not encontrada:
        agregar_incidencia(
            issues, TipoIncidencia.WARNING, credito.client, credito.row,
            f"Crédito {credito.number} referencia comprobantes inexistentes "
            f"({', '.join(referencias)}); se descarta.",
            value=str(credito.amount),
        )
        restante = 0.0

    return restante


def _emparejar_por_monto(creditos: List[LedgerEntry], facturas: List[LedgerEntry]) -> int:
    """NC y facturas de igual monto sin referencia cruzada se compensan entre sí."""
    pares = 0
    for credito in reversed(creditos):
        if credito.amount == 0:
            continue
        objetivo = abs(credito.amount)
        factura = next((f for f in facturas
                        if f.amount > 0 and abs(f.amount - objetivo) < TOLERANCIA_MONTO_IGUAL), None)
        if factura is None:
            continue
        factura.amount = 0.0
        factura.is_offset = True
        factura.estado = ESTADO_COMPENSADA
        credito.amount = 0.0
        credito.is_offset = True
        credito.estado = ESTADO_COMPENSADA
        pares += 1
    return pares


def _demora_promedio(movimientos: List[LedgerEntry], hoy: date) -> int:
    demoras = []
    for mov in movimientos:
        if mov.original_amount <= 0:
            continue
        if mov.payment_date is not None:
            fin = mov.payment_date
        elif mov.amount > 0:
            fin = hoy
        else:
            # Cancelada sin fecha de cobro: demora desconocida
            continue
        mov.payment_delay_days = (fin - mov.date).days
        demoras.append(mov.payment_delay_days)
    return int(round(np.mean(demoras))) if demoras else 0


def conciliar_cliente(movimientos: List[LedgerEntry], hoy: Optional[date] = None,
                      issues: Optional[List[Incidencia]] = None) -> List[LedgerEntry]:
    """
    Concilia los movimientos de un cliente. No modifica la lista recibida.

    Devuelve facturas, luego créditos y luego movimientos ya cancelados,
    todos con la demora promedio del cliente.
    """
    hoy = hoy or date.today()
    issues = issues if issues is not None else []
    movs = [replace(m) for m in movimientos]

    facturas = [m for m in movs if m.amount > 0]
    creditos = [m for m in movs if m.amount < 0]
    saldadas = [m for m in movs if m.amount == 0]

    for credito in creditos:
        restante = _aplicar_credito(credito, facturas, saldadas, issues)
        if restante > TOLERANCIA_CREDITO:
            credito.amount = -restante
        else:
            credito.amount = 0.0
            credito.is_offset = True
            credito.estado = ESTADO_COMPENSADA

    pares = _emparejar_por_monto(creditos, facturas)
    if pares:
        logger.info(f"[CONCILIACION] {movs[0].client}: {pares} compensaciones por monto")

    promedio = _demora_promedio(facturas + saldadas, hoy)
    resultado = facturas + creditos + saldadas
    for mov in resultado:
        mov.avg_payment_delay = promedio
    return resultado


def conciliar_movimientos(movimientos: List[LedgerEntry], hoy: Optional[date] = None,
                          issues: Optional[List[Incidencia]] = None) -> List[LedgerEntry]:
    """Concilia todos los clientes y ordena por días de atraso (mayor primero)."""
    hoy = hoy or date.today()
    issues = issues if issues is not None else []

    por_cliente: Dict[str, List[LedgerEntry]] = OrderedDict()
    for mov in movimientos:
        por_cliente.setdefault(mov.client, []).append(mov)

    conciliados: List[LedgerEntry] = []
    for cliente, movs in por_cliente.items():
        try:
            conciliados.extend(conciliar_cliente(movs, hoy, issues))
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, cliente, 0,
                               f"Error conciliando cuenta: {e}")
            conciliados.extend(movs)

    conciliados.sort(key=lambda m: m.days_overdue, reverse=True)
    deuda = sum(m.amount for m in conciliados if m.amount > 0)
    log_detalle_proceso("CONCILIACION", "RESULTADO", {"clientes": len(por_cliente),
                                                      "movimientos": len(conciliados),
                                                      "deuda_total": round(deuda, 2)})
    return conciliados
