# -*- coding: utf-8 -*-
"""
Lector de libros Excel de cotizaciones/ventas y de cuentas corrientes.

Un libro con una hoja PRESUPUESTOS se trata como libro de cotizaciones
(más sus hojas "VENTAS - CONCRETADAS AAAA"); cualquier otro libro se
trata como libro de cuentas corrientes, una hoja por cliente.

Los encabezados se buscan dinámicamente porque las planillas se mantienen
a mano y la fila de títulos cambia de hoja en hoja. Cada fila se lee en
dos pasos: primero se arma {campo: valor crudo} con las tablas de
sinónimos y después se convierte cada campo a su tipo.

Ningún error de fila u hoja corta el lote: todo queda en la lista de
incidencias que se devuelve junto con los datos.
"""

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from openpyxl import load_workbook

from config_logging import logger, log_detalle_proceso
from modelos import (
    DatasetCrudo, Incidencia, NormalizedQuote, NormalizedSale, RawLedgerRow,
    TipoIncidencia, agregar_incidencia, es_tipo_credito, etiqueta_estable, referencia_pago,
)
from normalizadores import (
    parse_currency, detect_currency, parse_excel_date, texto_celda,
    normalizar_encabezado,
)

# ---------------- Parámetros del negocio ----------------
FILAS_BUSQUEDA_COTIZACIONES = 20
FILAS_BUSQUEDA_CUENTAS = 50
FILA_ENCABEZADO_CUENTAS_DEFECTO = 2   # fila 3 de Excel

HOJA_PRESUPUESTOS = 'PRESUPUESTOS'
RE_HOJA_VENTAS = re.compile(r"VENTAS\s*-?\s*CONCRETADAS\s*20\d{2}", re.IGNORECASE)
RE_ANIO = re.compile(r"20\d{2}")
HOJAS_EXCLUIDAS = ('RESUMEN', 'SALDO TANGO')

MARCA_TOTAL_DEUDA = 'TOTAL DEUDA'
TEXTOS_RESUMEN = ('TOTAL', 'SALDO', 'DEUDA', 'DEVENGADO', 'DIFERENCIA', 'RESTO')
PALABRAS_SALDADA = ('SALDADA', 'PAGAD', 'CANCEL', 'COMPEN')
RE_SEPARADOR_PAGOS = re.compile(r"\s+[Yy&]\s+")

LARGO_MAXIMO_MONTO = 20


# ---------------- Tablas de sinónimos ----------------
@dataclass(frozen=True)
class Regla:
    """
    Asocia encabezados normalizados a un campo canónico.

    Un encabezado coincide si es igual a alguno de `iguales`, empieza con
    alguno de `empieza`, o contiene alguno de `contiene` (y además todos
    los de `tambien`); nunca si contiene algo de `excluye`.
    Con `solo_si_vacio` la regla no pisa un valor ya capturado y el
    encabezado sigue probando las reglas siguientes.
    """

    campo: str
    iguales: Tuple[str, ...] = ()
    contiene: Tuple[str, ...] = ()
    empieza: Tuple[str, ...] = ()
    tambien: Tuple[str, ...] = ()
    excluye: Tuple[str, ...] = ()
    solo_si_vacio: bool = False

    def aplica(self, clave: str) -> bool:
        if any(x in clave for x in self.excluye):
            return False
        if clave in self.iguales:
            return True
        if any(clave.startswith(x) for x in self.empieza):
            return True
        if any(x in clave for x in self.contiene):
            return all(x in clave for x in self.tambien)
        return False


REGLAS_COTIZACION = (
    Regla('id', iguales=('Nº', 'N°', 'NUMERO', 'NO.', 'Nº PRESUPUESTO', 'Nº COTIZACION')),
    Regla('id', empieza=('Nº', 'N°'), excluye=('OC', 'FC', 'FACTURA', 'CLIENTE', 'REMITO', 'PEDIDO'),
          solo_si_vacio=True),
    Regla('date', contiene=('FECHA',)),
    Regla('client', iguales=('CLIENTE',)),
    Regla('description', contiene=('DESCRIPCION',)),
    Regla('observations', iguales=('OBS',), contiene=('OBSERVACIONES',)),
    Regla('amount', contiene=('A FACTURAR', 'TOTAL', 'MONTO', 'PRECIO', 'VALOR', 'IMPORTE')),
    Regla('status', iguales=('ESTADO',)),
    Regla('equipment', iguales=('EQUIPO', 'EQUIPO - PATENTE')),
)

# Claves de ventas sin espacios: "A COBRAR SIN IVA" -> "ACOBRARSINIVA"
REGLAS_VENTA = (
    Regla('quote_id', iguales=('Nº', 'N°', 'NUMERO'), contiene=('COTIZACION',),
          excluye=('FECHA', 'DATE')),
    Regla('domain', contiene=('DOMINIO', 'CC')),
    Regla('oc_date', iguales=('FECHADEOC', 'FECHAOC', 'F.OC')),
    Regla('delivery_date', iguales=('FECHADEENTREGA', 'FECHAENTREGA')),
    Regla('invoice_date', contiene=('FECHAFACTURA', 'FECHAFC', 'F.FACTURA', 'F.FC')),
    Regla('payment_date', iguales=('FECHACOBRO',)),
    Regla('quote_date', iguales=('FECHA', 'FECHACOTIZACION', 'DATE'), contiene=('F.COT',)),
    Regla('receivable_real', iguales=('ACOBRARSINIVA', 'ACOBRARS/IVA'), contiene=('COBRARSINIVA',)),
    Regla('cost', contiene=('COSTO',)),
    Regla('profit_amount', iguales=('BEN$', 'BENEFICIO'), contiene=('BENEFICIO',), tambien=('$',)),
    Regla('profit_percent', iguales=('BEN%',), contiene=('BENEFICIO',), tambien=('%',)),
    Regla('receivable_std', iguales=('ACOBRARSTD',)),
    Regla('receivable_real', iguales=('ACOBRARREAL',), solo_si_vacio=True),
    Regla('collection_status', iguales=('ESTADO',)),
    Regla('oc_number', iguales=('OCNº', 'OCN°')),
    Regla('invoice_number', contiene=('FCNº', 'FCN°')),
    Regla('client', iguales=('CLIENTE',)),
    Regla('hours_quoted', iguales=('HSCOTIZADAS',)),
    Regla('hours_used', iguales=('HSUTILIZADAS',)),
    Regla('policy_index', iguales=('POLIZA',)),
    Regla('policy_status', iguales=('ESTADODEPOLIZA',)),
    Regla('work_description', contiene=('DESCRIPCION', 'TRABAJO')),
)

# Los montos de cuentas corrientes se guardan por columna y se resuelven
# por prioridad: IMPORTE > DEBE > HABER > SALDO.
REGLAS_CUENTA = (
    Regla('date', iguales=('FECHA',)),
    Regla('type', iguales=('TIPO COMP', 'TIPO', 'TIPO COMPROBANTE')),
    Regla('number', iguales=('NUMERO', 'NRO', 'Nº', 'N°', 'NUMERO COMP')),
    Regla('due_date', iguales=('FECHA VTO', 'FECHA VENCIMIENTO', 'VENCIMIENTO')),
    Regla('payment_date', iguales=('FECHA COBRO',)),
    Regla('importe', iguales=('MONTO', 'VALOR'), contiene=('IMPORTE',)),
    Regla('debe', iguales=('DEBE', 'DEBITO')),
    Regla('haber', iguales=('HABER', 'CREDITO')),
    Regla('saldo', contiene=('SALDO',)),
    Regla('obs', iguales=('DETALLE', 'COMENTARIOS'), contiene=('OBS',)),
)

CAMPOS_CONCATENADOS = ('obs',)


def _vacio(valor: Any) -> bool:
    return valor is None or (isinstance(valor, str) and not valor.strip())


def mapear_fila(claves: Sequence[str], valores: Sequence[Any],
                reglas: Sequence[Regla]) -> Dict[str, Any]:
    """Paso 1: {campo canónico: valor crudo} a partir de encabezados ya normalizados."""
    datos: Dict[str, Any] = {}
    for clave, valor in zip(claves, valores):
        for regla in reglas:
            if not regla.aplica(clave):
                continue
            actual = datos.get(regla.campo)
            if regla.solo_si_vacio and not _vacio(actual):
                continue
            if regla.campo in CAMPOS_CONCATENADOS:
                if not _vacio(valor):
                    texto = texto_celda(valor)
                    datos[regla.campo] = f"{actual} {texto}" if actual else texto
            elif not _vacio(valor) or regla.campo not in datos:
                # Una columna vacía no pisa un valor ya leído
                datos[regla.campo] = valor
            break
    return datos


# ---------------- Lectura de hojas ----------------
def _filas(ws) -> List[Tuple[Any, ...]]:
    return [tuple(fila) for fila in ws.iter_rows(values_only=True)]


def _fila_vacia(fila: Sequence[Any]) -> bool:
    return all(_vacio(v) for v in fila)


def _textos_mayuscula(fila: Sequence[Any]) -> List[str]:
    return [texto_celda(v).upper() for v in fila if not _vacio(v)]


def buscar_fila_encabezado(filas, criterio, max_filas: int, defecto: int = 0) -> int:
    """Índice (base 0) de la primera fila que cumple `criterio`, o `defecto`."""
    for i, fila in enumerate(filas[:max_filas]):
        if criterio(_textos_mayuscula(fila)):
            return i
    return defecto


def _encabezado_cotizaciones(valores: List[str]) -> bool:
    return 'CLIENTE' in valores and any('FECHA' in v for v in valores)


def _encabezado_ventas(valores: List[str]) -> bool:
    return ('Nº' in valores or 'N°' in valores
            or ('CLIENTE' in valores and any('COBRAR' in v for v in valores)))


def _encabezado_cuentas(valores: List[str]) -> bool:
    tiene_fecha = any(v == 'FECHA' or 'DATE' in v for v in valores)
    tiene_importe = any('IMPORTE' in v or v in ('DEBE', 'HABER', 'SALDO', 'TOTAL', 'MONTO')
                        for v in valores)
    tiene_comprobante = any('COMPROBANTE' in v or 'TIPO' in v or 'DETALLE' in v for v in valores)
    return tiene_fecha and (tiene_importe or tiene_comprobante)


def armar_encabezados(fila: Sequence[Any], compacto: bool = False) -> List[str]:
    """Encabezados normalizados; vacíos -> COLUMNA_n, repetidos -> sufijo _n."""
    claves: List[str] = []
    vistos: Dict[str, int] = {}
    for i, valor in enumerate(fila):
        clave = normalizar_encabezado(texto_celda(valor), compacto=compacto) if not _vacio(valor) else ''
        if not clave:
            clave = f"COLUMNA_{i + 1}"
        if clave in vistos:
            vistos[clave] += 1
            clave = f"{clave}_{vistos[clave]}"
        else:
            vistos[clave] = 0
        claves.append(clave)
    return claves


def _filas_datos(filas, indice_encabezado: int):
    """(fila Excel base 1, valores) para cada fila no vacía debajo del encabezado."""
    for i in range(indice_encabezado + 1, len(filas)):
        if not _fila_vacia(filas[i]):
            yield i + 1, filas[i]


def es_libro_cotizaciones(nombres_hojas: Iterable[str]) -> bool:
    return any(HOJA_PRESUPUESTOS in n.upper() for n in nombres_hojas)


# ---------------- Cotizaciones ----------------
def _buscar_hoja_presupuestos(wb):
    for ws in wb.worksheets:
        if ws.title.strip().upper() == HOJA_PRESUPUESTOS:
            return ws
    for ws in wb.worksheets:
        if HOJA_PRESUPUESTOS in ws.title.upper():
            return ws
    return None


def leer_cotizaciones(ws, issues: List[Incidencia]) -> List[NormalizedQuote]:
    filas = _filas(ws)
    idx = buscar_fila_encabezado(filas, _encabezado_cotizaciones, FILAS_BUSQUEDA_COTIZACIONES)
    claves = armar_encabezados(filas[idx]) if filas else []

    cotizaciones = []
    for nro_fila, valores in _filas_datos(filas, idx):
        try:
            datos = mapear_fila(claves, valores, REGLAS_COTIZACION)
            id_cot = texto_celda(datos.get('id'))
            if not id_cot:
                continue
            descripcion = texto_celda(datos.get('description'))
            observaciones = texto_celda(datos.get('observations'))
            if observaciones:
                descripcion = f"{descripcion} - {observaciones}" if descripcion else observaciones
            monto_crudo = datos.get('amount')
            cotizaciones.append(NormalizedQuote(
                id=id_cot,
                date=parse_excel_date(datos.get('date')),
                client=texto_celda(datos.get('client')),
                description=descripcion,
                observations=observaciones,
                amount=parse_currency(monto_crudo),
                currency=detect_currency(monto_crudo),
                status=texto_celda(datos.get('status')),
                equipment=texto_celda(datos.get('equipment')),
                row=nro_fila,
            ))
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, ws.title, nro_fila,
                               f"Error leyendo cotización: {e}")

    agregar_incidencia(issues, TipoIncidencia.INFO, ws.title, 0,
                       f"Leídas {len(cotizaciones)} cotizaciones de {ws.title}.")
    log_detalle_proceso("PARSER", "COTIZACIONES", {"hoja": ws.title, "fila_encabezado": idx + 1,
                                                   "cotizaciones": len(cotizaciones)})
    return cotizaciones


# ---------------- Ventas ----------------
def _venta_desde_datos(datos: Dict[str, Any], hoja: str, anio: Optional[int], nro_fila: int) -> NormalizedSale:
    costo_crudo = datos.get('cost')
    return NormalizedSale(
        quote_id=texto_celda(datos.get('quote_id')),
        source_sheet=hoja,
        year=anio,
        row=nro_fila,
        client=texto_celda(datos.get('client')),
        quote_date=parse_excel_date(datos.get('quote_date')),
        oc_date=parse_excel_date(datos.get('oc_date')),
        invoice_date=parse_excel_date(datos.get('invoice_date')),
        delivery_date=parse_excel_date(datos.get('delivery_date')),
        payment_date=parse_excel_date(datos.get('payment_date')),
        receivable_real=parse_currency(datos.get('receivable_real')),
        receivable_std=parse_currency(datos.get('receivable_std')),
        cost=parse_currency(costo_crudo),
        currency=detect_currency(costo_crudo),
        profit_amount=parse_currency(datos.get('profit_amount')),
        profit_percent=parse_currency(datos.get('profit_percent')),
        collection_status=texto_celda(datos.get('collection_status')),
        oc_number=texto_celda(datos.get('oc_number')),
        invoice_number=texto_celda(datos.get('invoice_number')),
        work_description=texto_celda(datos.get('work_description')),
        domain=texto_celda(datos.get('domain')),
        hours_quoted=parse_currency(datos.get('hours_quoted')),
        hours_used=parse_currency(datos.get('hours_used')),
        policy_index=texto_celda(datos.get('policy_index')),
        policy_status=texto_celda(datos.get('policy_status')),
    )


def leer_ventas(ws, issues: List[Incidencia]) -> List[NormalizedSale]:
    hoja = ws.title
    m = RE_ANIO.search(hoja)
    anio = int(m.group(0)) if m else None

    filas = _filas(ws)
    idx = buscar_fila_encabezado(filas, _encabezado_ventas, FILAS_BUSQUEDA_COTIZACIONES)
    claves = armar_encabezados(filas[idx], compacto=True) if filas else []

    ventas = []
    for nro_fila, valores in _filas_datos(filas, idx):
        try:
            datos = mapear_fila(claves, valores, REGLAS_VENTA)
            venta = _venta_desde_datos(datos, hoja, anio, nro_fila)
            tiene_monto = not _vacio(datos.get('receivable_real'))
            if not venta.quote_id and not (venta.client and tiene_monto):
                continue

            if not venta.quote_id:
                agregar_incidencia(issues, TipoIncidencia.WARNING, hoja, nro_fila,
                                   'Venta sin Nº de Cotización. Se generó un ID temporal.',
                                   column='Nº')
                venta = replace(venta, quote_id=f"SIN-COT-{hoja}-{etiqueta_estable(hoja, nro_fila)}")

            if venta.receivable_real == 0:
                agregar_incidencia(issues, TipoIncidencia.WARNING, hoja, nro_fila,
                                   'Monto es 0 o vacío en "A COBRAR SIN IVA".',
                                   column='A COBRAR SIN IVA')

            if venta.effective_date is None:
                agregar_incidencia(issues, TipoIncidencia.WARNING, hoja, nro_fila,
                                   'Falta "FECHA DE OC" y "FECHA COTIZACION" válida.')

            ventas.append(venta)
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, hoja, nro_fila,
                               f"Error leyendo venta: {e}")

    agregar_incidencia(issues, TipoIncidencia.INFO, hoja, 0,
                       f"Hoja {hoja}: Leídas {len(ventas)} ventas.")
    log_detalle_proceso("PARSER", "VENTAS", {"hoja": hoja, "fila_encabezado": idx + 1,
                                             "ventas": len(ventas)})
    return ventas


def procesar_libro_cotizaciones(wb, dataset: DatasetCrudo) -> None:
    ws = _buscar_hoja_presupuestos(wb)
    if ws is not None:
        try:
            dataset.quotes.extend(leer_cotizaciones(ws, dataset.issues))
        except Exception as e:
            agregar_incidencia(dataset.issues, TipoIncidencia.ERROR, ws.title, 0,
                               f"No se pudo procesar la hoja: {e}")

    for ws in wb.worksheets:
        if not RE_HOJA_VENTAS.search(ws.title):
            continue
        try:
            dataset.sales.extend(leer_ventas(ws, dataset.issues))
        except Exception as e:
            agregar_incidencia(dataset.issues, TipoIncidencia.ERROR, ws.title, 0,
                               f"No se pudo procesar la hoja: {e}")


# ---------------- Cuentas corrientes ----------------
@dataclass
class ContextoRelleno:
    """Última fila válida de la hoja; completa fecha, tipo y número faltantes."""

    fecha: Optional[date] = None
    tipo: str = ''
    numero: str = ''

    def completar(self, fila: RawLedgerRow) -> Tuple[RawLedgerRow, bool]:
        completada = False
        es_pago = es_tipo_credito(fila.type)
        if fila.date is None and self.fecha is not None:
            fila = replace(fila, date=self.fecha, type=fila.type or self.tipo)
            completada = True
        # Un pago nunca hereda el número de otra factura, venga con el signo que venga
        if (not fila.number and self.numero and not es_pago
                and fila.amount is not None and fila.amount >= 0):
            fila = replace(fila, number=self.numero)
            completada = True
        return fila, completada

    def recordar(self, fila: RawLedgerRow) -> None:
        self.fecha = fila.date
        self.tipo = fila.type
        self.numero = fila.number


def escanear_total_deuda(filas) -> Optional[float]:
    """Valor de la celda contigua al primer "TOTAL DEUDA" de la hoja."""
    for fila in filas:
        for i, celda in enumerate(fila):
            if _vacio(celda) or MARCA_TOTAL_DEUDA not in texto_celda(celda).upper():
                continue
            if i < len(fila) - 1:
                return parse_currency(fila[i + 1])
    return None


def _monto_por_prioridad(datos: Dict[str, Any]) -> Optional[float]:
    for campo, signo in (('importe', 1), ('debe', 1), ('haber', -1)):
        valor = datos.get(campo)
        if _vacio(valor):
            continue
        monto = parse_currency(valor)
        if monto != 0:
            return -abs(monto) if signo < 0 else monto

    saldo = datos.get('saldo')
    if not _vacio(saldo) and texto_celda(saldo) != '-':
        return parse_currency(saldo)
    return None


def _monto_fuerza_bruta(valores: Sequence[Any], numero: str, cliente: str) -> Optional[float]:
    """Primer valor con pinta de monto entre todas las celdas de la fila."""
    for valor in valores:
        if _vacio(valor) or isinstance(valor, (bool, date, datetime)):
            continue
        monto = parse_currency(valor)
        if monto == 0:
            continue
        texto = texto_celda(valor).upper()
        if '/' in texto or 'DATE' in texto or ':' in texto:
            continue
        if texto == numero.upper() or texto == cliente.upper():
            continue
        if len(texto) > LARGO_MAXIMO_MONTO:
            continue
        if 2000 <= monto <= 2030 and float(monto).is_integer():
            continue
        return monto
    return None


def _fechas_de_cobro(crudo: Any) -> List[Optional[date]]:
    if isinstance(crudo, str) and (' Y ' in crudo.upper() or '&' in crudo):
        fechas = [parse_excel_date(p.strip()) for p in RE_SEPARADOR_PAGOS.split(crudo)]
        fechas = [f for f in fechas if f is not None]
    else:
        fecha = parse_excel_date(crudo)
        fechas = [fecha] if fecha else []
    return fechas or [None]


def leer_cuenta_cliente(ws, issues: List[Incidencia]) -> List[RawLedgerRow]:
    cliente = ws.title.strip()
    filas = _filas(ws)
    idx = buscar_fila_encabezado(filas, _encabezado_cuentas, FILAS_BUSQUEDA_CUENTAS,
                                 defecto=FILA_ENCABEZADO_CUENTAS_DEFECTO)
    if idx >= len(filas):
        return []
    claves = armar_encabezados(filas[idx])

    contexto = ContextoRelleno()
    movimientos: List[RawLedgerRow] = []

    for nro_fila, valores in _filas_datos(filas, idx):
        try:
            movimientos.extend(_leer_fila_cuenta(cliente, claves, valores, nro_fila, contexto, issues))
        except Exception as e:
            agregar_incidencia(issues, TipoIncidencia.ERROR, ws.title, nro_fila,
                               f"Error leyendo movimiento: {e}")

    log_detalle_proceso("PARSER", "CUENTA", {"hoja": ws.title, "fila_encabezado": idx + 1,
                                             "movimientos": len(movimientos)})
    return movimientos


def _leer_fila_cuenta(cliente, claves, valores, nro_fila, contexto: ContextoRelleno,
                      issues: List[Incidencia]) -> List[RawLedgerRow]:
    datos = mapear_fila(claves, valores, REGLAS_CUENTA)
    texto_fila = ' '.join(_textos_mayuscula(valores))
    es_resumen = any(t in texto_fila for t in TEXTOS_RESUMEN)

    numero = texto_celda(datos.get('number'))
    tipo = texto_celda(datos.get('type'))
    obs = texto_celda(datos.get('obs'))

    monto = _monto_por_prioridad(datos)
    if not monto:
        bruto = _monto_fuerza_bruta(valores, numero, cliente)
        if bruto is not None:
            monto = bruto
            agregar_incidencia(issues, TipoIncidencia.WARNING, cliente, nro_fila,
                               f"Monto tomado por búsqueda en toda la fila: {bruto}",
                               value=str(bruto))

    cobro_crudo = datos.get('payment_date')
    info_cobro = texto_celda(cobro_crudo)
    if isinstance(cobro_crudo, str) and any(p in cobro_crudo.upper() for p in PALABRAS_SALDADA):
        obs = f"{obs} - {cobro_crudo}"

    base = RawLedgerRow(
        client=cliente,
        row=nro_fila,
        date=parse_excel_date(datos.get('date')),
        due_date=parse_excel_date(datos.get('due_date')),
        type=tipo,
        number=numero,
        amount=monto,
        obs=obs,
        payment_info=info_cobro,
    )
    tiene_datos = bool(base.date or tipo or numero or monto)

    fechas = _fechas_de_cobro(cobro_crudo)
    partes = len(fechas)
    aceptadas = []

    for i, fecha_cobro in enumerate(fechas):
        fila = replace(base, payment_date=fecha_cobro)
        if partes > 1 and fila.amount:
            fila = replace(fila, amount=fila.amount / partes,
                           obs=f"{fila.obs} (Pago {i + 1}/{partes})")

        con_datos = tiene_datos or fecha_cobro is not None

        if not es_resumen and fila.amount:
            fila, completada = contexto.completar(fila)
            con_datos = con_datos or completada
            if not fila.number and (fila.amount < 0 or es_tipo_credito(fila.type)):
                fila = replace(fila, number=referencia_pago(cliente, nro_fila, i))
                con_datos = True
        else:
            if es_resumen:
                con_datos = False
            if not fila.number and not fila.type and fecha_cobro is None:
                con_datos = False

        if fila.amount == 0 and fecha_cobro is None and fila.date is None:
            con_datos = False

        if con_datos and fila.date and not es_resumen and fila.amount is not None:
            aceptadas.append(fila)
            if i == 0 and fila.number:
                contexto.recordar(fila)

    return aceptadas


def procesar_libro_cuentas(wb, dataset: DatasetCrudo) -> None:
    for ws in wb.worksheets:
        titulo = ws.title
        if any(x in titulo.upper() for x in HOJAS_EXCLUIDAS):
            logger.info(f"[PARSER] Hoja de resumen omitida: {titulo}")
            continue
        if ws.sheet_state != 'visible':
            logger.info(f"[PARSER] Hoja oculta omitida: {titulo}")
            continue
        try:
            total = escanear_total_deuda(_filas(ws))
            if total is not None:
                dataset.audit[titulo.strip()] = total
            dataset.ledger.extend(leer_cuenta_cliente(ws, dataset.issues))
        except Exception as e:
            agregar_incidencia(dataset.issues, TipoIncidencia.ERROR, titulo, 0,
                               f"No se pudo procesar la hoja: {e}")


# ---------------- Entrada ----------------
def _leer_bytes(archivo) -> Tuple[str, bytes]:
    if isinstance(archivo, tuple):
        nombre, contenido = archivo
        return str(nombre), bytes(contenido)
    ruta = Path(archivo)
    return ruta.name, ruta.read_bytes()


def parse_excel_files(archivos: Iterable[Any]) -> DatasetCrudo:
    """
    Lee una lista de libros (rutas o tuplas (nombre, bytes)).

    Un archivo ilegible produce una incidencia CRITICAL y se omite; el
    resto del lote se procesa igual.
    """
    dataset = DatasetCrudo()
    for archivo in archivos:
        nombre = archivo[0] if isinstance(archivo, tuple) else str(archivo)
        try:
            nombre, contenido = _leer_bytes(archivo)
            wb = load_workbook(BytesIO(contenido), data_only=True)
            nombres = [ws.title for ws in wb.worksheets]
            log_detalle_proceso("PARSER", "ARCHIVO", {"archivo": nombre, "hojas": nombres})

            if es_libro_cotizaciones(nombres):
                procesar_libro_cotizaciones(wb, dataset)
            else:
                procesar_libro_cuentas(wb, dataset)
        except Exception as e:
            logger.error(f"[PARSER] No se pudo leer {nombre}: {e}")
            agregar_incidencia(dataset.issues, TipoIncidencia.CRITICAL, 'GENERAL', 0,
                               'No se pudo leer el archivo. Asegurate de que no esté corrupto.',
                               file=nombre, column='N/A', value=str(e))
    return dataset
