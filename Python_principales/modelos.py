# -*- coding: utf-8 -*-
"""
Modelos de datos del procesamiento de cotizaciones, ventas y cuentas
corrientes de clientes.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


class TipoIncidencia(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Origen(str, Enum):
    """Procedencia de un registro unificado de cotización."""

    MATCH = "MATCH"
    QUOTE_ONLY = "QUOTE_ONLY"
    SALE_ONLY = "SALE_ONLY"


ESTADO_GANADA = "GANADA"
ESTADO_PERDIDA = "PERDIDA"
ESTADO_PENDIENTE = "PENDIENTE"
ESTADO_GANADA_SIN_PRESUPUESTO = "GANADA (Sin Presupuesto)"

BUCKET_CORRIENTE = "Corriente"
BUCKET_30 = "1-30 días"
BUCKET_60 = "31-60 días"
BUCKET_90 = "61-90 días"
BUCKET_MAS_90 = "+90 días"

BUCKETS_AGING = (BUCKET_CORRIENTE, BUCKET_30, BUCKET_60, BUCKET_90, BUCKET_MAS_90)

TIPOS_CREDITO = ("PAGO", "NC", "NOTA DE CREDITO", "CREDITO")


@dataclass
class Incidencia:
    """Entrada del rastro de diagnóstico de una corrida."""

    type: str
    sheet: str
    row: int
    message: str
    file: Optional[str] = None
    column: Optional[str] = None
    value: Optional[str] = None


def agregar_incidencia(incidencias: List[Incidencia], tipo: TipoIncidencia, hoja: str,
                       fila: int, mensaje: str, **extra: Any) -> Incidencia:
    inc = Incidencia(type=tipo.value, sheet=hoja, row=fila, message=mensaje, **extra)
    incidencias.append(inc)
    return inc


@dataclass
class NormalizedQuote:
    id: str
    date: Optional[date] = None
    client: str = ''
    description: str = ''
    observations: str = ''
    amount: float = 0.0
    currency: str = 'ARS'
    status: str = ''
    equipment: str = ''
    row: int = 0


@dataclass
class NormalizedSale:
    quote_id: str
    source_sheet: str
    year: Optional[int] = None
    row: int = 0
    client: str = ''
    quote_date: Optional[date] = None
    oc_date: Optional[date] = None
    invoice_date: Optional[date] = None
    delivery_date: Optional[date] = None
    payment_date: Optional[date] = None
    receivable_real: float = 0.0
    receivable_std: float = 0.0
    cost: float = 0.0
    currency: str = 'ARS'
    profit_amount: float = 0.0
    profit_percent: float = 0.0
    collection_status: str = ''
    oc_number: str = ''
    invoice_number: str = ''
    work_description: str = ''
    domain: str = ''
    hours_quoted: float = 0.0
    hours_used: float = 0.0
    policy_index: str = ''
    policy_status: str = ''

    @property
    def effective_date(self) -> Optional[date]:
        """Fecha de OC; si falta, la fecha de cotización de la hoja de ventas."""
        return self.oc_date or self.quote_date


class ClaveContenido(NamedTuple):
    """Identidad de contenido de una venta para detectar filas repetidas entre hojas."""

    quote_id: str
    client: str
    amount: float
    date: Optional[date]

    @classmethod
    def de_venta(cls, venta: NormalizedSale) -> "ClaveContenido":
        cliente = ''.join((venta.client or '').upper().split())
        return cls(
            quote_id=(venta.quote_id or '').strip().upper(),
            client=cliente,
            amount=round(venta.receivable_real, 2),
            date=venta.effective_date,
        )


@dataclass
class UnifiedQuoteRecord:
    id: str
    source: str
    status: str
    raw_status: str = ''
    date: Optional[date] = None
    client: str = 'Sin Cliente'
    description: str = '-'
    equipment: str = '-'
    amount: float = 0.0
    currency: str = 'ARS'
    amount_converted: float = 0.0
    exchange_rate_used: float = 1.0
    conversion_date: Optional[date] = None
    is_sold: bool = False
    sale_date: Optional[date] = None
    oc_date: Optional[date] = None
    delivery_date: Optional[date] = None
    payment_date: Optional[date] = None
    sale_amount: float = 0.0
    cost: float = 0.0
    profit_amount: float = 0.0
    profit_percent: float = 0.0
    receivable_std: float = 0.0
    receivable_real: float = 0.0
    collection_status: str = '-'
    oc_number: str = '-'
    invoice_number: str = '-'
    final_description: str = '-'
    sale_domain: str = '-'
    hours_quoted: float = 0.0
    hours_used: float = 0.0
    policy_index: str = '-'
    policy_status: str = '-'
    source_sheet: str = ''

    @property
    def is_won(self) -> bool:
        return self.status.startswith(ESTADO_GANADA)


@dataclass
class RawLedgerRow:
    """Fila de cuenta corriente tal como sale del parser, antes de signos y saldos."""

    client: str
    row: int
    date: Optional[date] = None
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    type: str = ''
    number: str = ''
    amount: Optional[float] = None
    obs: str = ''
    payment_info: str = ''


@dataclass
class LedgerEntry:
    id: str
    client: str
    date: date
    amount: float
    original_amount: float
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    type: str = ''
    number: str = ''
    obs: str = ''
    row: int = 0
    days_overdue: int = 0
    aging_bucket: str = BUCKET_CORRIENTE
    payment_delay_days: Optional[int] = None
    avg_payment_delay: int = 0
    is_settled: bool = False
    is_offset: bool = False
    is_manual_payment: bool = False
    applied_nc: float = 0.0
    estado: str = 'ABIERTA'


@dataclass
class DatasetCrudo:
    """Salida del parser de libros."""

    quotes: List[NormalizedQuote] = field(default_factory=list)
    sales: List[NormalizedSale] = field(default_factory=list)
    ledger: List[RawLedgerRow] = field(default_factory=list)
    audit: Dict[str, float] = field(default_factory=dict)
    issues: List[Incidencia] = field(default_factory=list)


@dataclass
class ResultadoProceso:
    quotes: List[UnifiedQuoteRecord] = field(default_factory=list)
    clients: List[LedgerEntry] = field(default_factory=list)
    kpi: Dict[str, Any] = field(default_factory=dict)
    audit: Dict[str, float] = field(default_factory=dict)
    issues: List[Incidencia] = field(default_factory=list)
    skipped_duplicate_amount: float = 0.0


def etiqueta_estable(*partes: Any) -> str:
    """Etiqueta corta derivada del contenido; la misma entrada da la misma etiqueta."""
    base = '|'.join(str(p) for p in partes)
    return hashlib.sha1(base.encode('utf-8')).hexdigest()[:6].upper()


def referencia_pago(cliente: str, fila: int, parte: int = 0) -> str:
    """Referencia para un pago sin número de comprobante."""
    return f"PAY-{etiqueta_estable(cliente, fila, parte)}"


def como_dict(registro) -> Dict[str, Any]:
    """dataclass -> dict con fechas en ISO, para exportar o serializar."""
    datos = asdict(registro)
    for clave, valor in datos.items():
        if isinstance(valor, date):
            datos[clave] = valor.isoformat()
    return datos


def es_tipo_credito(tipo: Optional[str]) -> bool:
    """NC, pagos y créditos restan de la deuda aunque vengan en positivo."""
    tipo = (tipo or '').upper()
    return any(t in tipo for t in TIPOS_CREDITO)
