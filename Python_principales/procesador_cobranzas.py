# -*- coding: utf-8 -*-
"""
Procesador de Cobranzas
Lee el libro de cotizaciones/ventas y el libro de cuentas corrientes,
cruza ventas, concilia cuentas y genera un reporte Excel con
cotizaciones, movimientos, resumen por cliente, auditoría e incidencias.

Uso:
    python procesador_cobranzas.py COTIZACIONES.xlsx CLIENTES.xlsx -o reporte.xlsx
"""

import sys
import json
import argparse
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from config_logging import (
    logger, log_inicio_proceso, log_fin_proceso, log_error_proceso, registrar_incidencias,
)
from conciliacion_cuentas import construir_movimientos, conciliar_movimientos
from cotizacion_dolar import ServicioCotizaciones, formato_cotizacion
from cruce_ventas import cruzar_cotizaciones_ventas
from indicadores import calcular_kpis, AUDITORIA_DIFERENCIA
from lector_libros import parse_excel_files
from modelos import ResultadoProceso, TipoIncidencia, agregar_incidencia, como_dict
from normalizadores import formato_moneda_ar
from unificacion_clientes import unify_client_names

# ---------------------
# Configurar encoding para Windows
# ---------------------
if sys.platform == 'win32':
    try:
        sys.stdout.reconfigure(encoding='utf-8')
        sys.stderr.reconfigure(encoding='utf-8')
    except AttributeError:
        pass

# ---------------------
# Directorios
# ---------------------
BASE_DIR = Path(__file__).resolve().parent
OUT_DIR = BASE_DIR.parent / 'salidas'


def _nombre_archivo(archivo: Any) -> str:
    return str(archivo[0]) if isinstance(archivo, tuple) else Path(archivo).name


def procesar_archivos(archivos: Iterable[Any], servicio: Optional[ServicioCotizaciones] = None,
                      hoy: Optional[date] = None,
                      renombres: Optional[Dict[str, str]] = None) -> ResultadoProceso:
    """
    Corre el proceso completo sobre una lista de libros (rutas o tuplas
    (nombre, bytes)). Los datos mal formados nunca lanzan excepción:
    quedan en `issues`.
    """
    archivos = list(archivos)
    hoy = hoy or date.today()
    servicio = servicio or ServicioCotizaciones()
    log_inicio_proceso("PROCESO", ", ".join(_nombre_archivo(a) for a in archivos))

    dataset = parse_excel_files(archivos)
    issues = list(dataset.issues)

    quotes, duplicado = cruzar_cotizaciones_ventas(dataset.quotes, dataset.sales, servicio, hoy, issues)
    extranjeras = sum(1 for q in quotes if q.currency != 'ARS')
    if extranjeras and not servicio.history:
        agregar_incidencia(issues, TipoIncidencia.WARNING, 'GENERAL', 0,
                           f"Sin historial de cotizaciones: {extranjeras} montos en moneda "
                           f"extranjera quedaron convertidos a 0 ARS.")
    movimientos = construir_movimientos(dataset.ledger, hoy, issues)
    clients = conciliar_movimientos(movimientos, hoy, issues)
    audit = dict(dataset.audit)

    if renombres:
        quotes, clients, audit = unify_client_names(quotes, clients, audit, renombres)

    kpi = calcular_kpis(quotes, clients, audit, hoy)
    registrar_incidencias(issues)

    return ResultadoProceso(
        quotes=quotes,
        clients=clients,
        kpi=kpi,
        audit=audit,
        issues=issues,
        skipped_duplicate_amount=duplicado,
    )


# ---------------------
# Reporte Excel
# ---------------------
def _escribir_hoja(writer, df: pd.DataFrame, nombre_hoja: str, fmt_header, fmt_alerta=None,
                   col_alerta: Optional[str] = None, valor_alerta: Optional[str] = None) -> None:
    """Escribe una hoja con encabezado formateado y filas resaltadas según una columna."""
    df.to_excel(writer, sheet_name=nombre_hoja, index=False)
    ws = writer.sheets[nombre_hoja]

    for col_idx, col_name in enumerate(df.columns):
        ws.write(0, col_idx, col_name, fmt_header)
        ws.set_column(col_idx, col_idx, 18)

    if fmt_alerta is not None and col_alerta in df.columns:
        for row_idx, valor in enumerate(df[col_alerta]):
            if valor == valor_alerta:
                ws.set_row(row_idx + 1, None, fmt_alerta)

    ws.freeze_panes(1, 0)


def exportar_excel(resultado: ResultadoProceso, ruta) -> Path:
    ruta = Path(ruta)
    ruta.parent.mkdir(parents=True, exist_ok=True)

    df_cot = pd.DataFrame([como_dict(q) for q in resultado.quotes])
    df_mov = pd.DataFrame([como_dict(c) for c in resultado.clients])
    df_cli = pd.DataFrame(resultado.kpi.get('debt', {}).get('clients', []))
    df_aud = pd.DataFrame(resultado.kpi.get('audit', []))
    df_inc = pd.DataFrame([como_dict(i) for i in resultado.issues])

    with pd.ExcelWriter(ruta, engine='xlsxwriter') as writer:
        wb = writer.book
        fmt_header = wb.add_format({
            'bold': True, 'bg_color': '#1F3864', 'font_color': '#FFFFFF',
            'border': 1, 'align': 'center', 'valign': 'vcenter', 'text_wrap': True
        })
        fmt_alerta = wb.add_format({'bg_color': '#F8CBAD'})

        _escribir_hoja(writer, df_cot, 'COTIZACIONES', fmt_header)
        _escribir_hoja(writer, df_mov, 'CUENTAS', fmt_header)
        _escribir_hoja(writer, df_cli, 'CLIENTES', fmt_header, fmt_alerta, 'auditStatus', AUDITORIA_DIFERENCIA)
        _escribir_hoja(writer, df_aud, 'AUDITORIA', fmt_header, fmt_alerta, 'auditStatus', AUDITORIA_DIFERENCIA)
        _escribir_hoja(writer, df_inc, 'INCIDENCIAS', fmt_header, fmt_alerta, 'type', TipoIncidencia.CRITICAL.value)

    logger.info(f"[PROCESO] Reporte generado: {ruta}")
    return ruta


def _contar(resultado: ResultadoProceso, tipo: TipoIncidencia) -> int:
    return sum(1 for i in resultado.issues if i.type == tipo.value)


# ---------------------
# Main
# ---------------------
def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Procesa cotizaciones, ventas y cuentas corrientes de clientes"
    )
    parser.add_argument("archivos", nargs='+',
                        help="Libros Excel: cotizaciones/ventas y cuentas corrientes")
    parser.add_argument("-o", "--output-file", default=None,
                        help="Archivo de salida (*.xlsx)")
    parser.add_argument("--hoy", default=None,
                        help="Fecha de referencia YYYY-MM-DD (por defecto: hoy)")
    parser.add_argument("--renombres", default=None,
                        help="JSON con renombres de clientes {incorrecto: correcto}")
    parser.add_argument("--sin-cotizaciones", action='store_true',
                        help="No consultar la cotización del dólar")
    args = parser.parse_args(argv)

    try:
        hoy = None
        if args.hoy:
            try:
                hoy = datetime.strptime(args.hoy, "%Y-%m-%d").date()
            except ValueError:
                raise ValueError("La fecha debe tener formato YYYY-MM-DD")

        renombres = None
        if args.renombres:
            with open(args.renombres, 'r', encoding='utf-8') as f:
                renombres = json.load(f)
            if not isinstance(renombres, dict):
                raise ValueError("El archivo de renombres debe ser un objeto JSON {incorrecto: correcto}")

        servicio = ServicioCotizaciones()
        if not args.sin_cotizaciones:
            servicio.init()

        resultado = procesar_archivos(args.archivos, servicio, hoy, renombres)

        if args.output_file:
            salida = Path(args.output_file)
        else:
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            salida = OUT_DIR / f"reporte_cobranzas_{ts}.xlsx"
        exportar_excel(resultado, salida)

        deuda = resultado.kpi['debt']['totalDebt']
        log_fin_proceso("PROCESO", str(salida), {
            "cotizaciones": len(resultado.quotes),
            "movimientos": len(resultado.clients),
            "deuda_total": round(deuda, 2),
        })

        print(f"\n{'=' * 60}")
        print("PROCESO COMPLETADO")
        print(f"{'=' * 60}")
        print(f"Archivo      : {salida}")
        print(f"Cotizaciones : {len(resultado.quotes)}")
        print(f"Movimientos  : {len(resultado.clients)}")
        print(f"Deuda total  : {formato_moneda_ar(deuda)}")
        print(f"Dólar hoy    : {formato_cotizacion(servicio.get_rate_for_display(hoy))}")
        print(f"Duplicadas   : {formato_moneda_ar(resultado.skipped_duplicate_amount)}")
        print(f"Incidencias  : {_contar(resultado, TipoIncidencia.CRITICAL)} críticas, "
              f"{_contar(resultado, TipoIncidencia.ERROR)} errores, "
              f"{_contar(resultado, TipoIncidencia.WARNING)} advertencias")

    except Exception as e:
        log_error_proceso("PROCESO", e)
        print(f"\n{'=' * 60}")
        print("ERROR EN EL PROCESO")
        print(f"{'=' * 60}")
        print(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
