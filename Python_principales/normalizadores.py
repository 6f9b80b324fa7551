# -*- coding: utf-8 -*-
"""
Normalizadores de valores de celda: montos, fechas y moneda.

Las planillas de origen mezclan formato argentino (1.234,56) y
estadounidense (1,234.56), fechas seriales de Excel y fechas en texto.
Estas funciones son totales: ante un valor irrecuperable devuelven 0 o
None, nunca lanzan excepción.
"""

import re
import math
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

# Días entre el 30/12/1899 (base de Excel) y el 01/01/1970
EXCEL_EPOCH_OFFSET = 25569
UNIX_EPOCH = date(1970, 1, 1)

_RE_NO_NUMERICO = re.compile(r"[^\d.,-]")
_RE_NUMERO_INICIAL = re.compile(r"^-?\d*\.?\d+")
_RE_FECHA_DMY = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$")
_RE_FECHA_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")


def _es_vacio(valor: Any) -> bool:
    if valor is None:
        return True
    try:
        return bool(pd.isna(valor))
    except (TypeError, ValueError):
        return False


def _a_float(texto: str) -> float:
    """float() tolerante: si falla, toma el prefijo numérico."""
    try:
        return float(texto)
    except ValueError:
        m = _RE_NUMERO_INICIAL.match(texto)
        return float(m.group(0)) if m else 0.0


def parse_currency(valor: Any) -> float:
    """
    Convierte un monto de celda a float.

    - "USD 13.830" -> 13830 (tres dígitos tras el único punto = miles)
    - "13.83"      -> 13.83
    - "1.234,56"   -> 1234.56
    - "1,234.56"   -> 1234.56
    - "(100,00)"   -> -100.0
    - "" / None    -> 0.0

    La heurística de los tres dígitos es ambigua para montos con tres
    decimales reales ("0.125" -> 125); se conserva porque la conciliación
    depende de ella.
    """
    if isinstance(valor, bool):
        return 0.0
    if isinstance(valor, (int, float, np.number)):
        num = float(valor)
        return 0.0 if math.isnan(num) else num
    if not isinstance(valor, str):
        return 0.0

    texto = valor.strip()
    if not texto:
        return 0.0

    # Negativo contable: (100.00)
    negativo_contable = '(' in texto and ')' in texto

    limpio = _RE_NO_NUMERICO.sub('', texto)
    if not limpio or limpio in ('-', '.', ','):
        return 0.0

    tiene_punto = '.' in limpio
    tiene_coma = ',' in limpio

    if tiene_punto and tiene_coma:
        # El separador que aparece último es el decimal
        if limpio.rfind('.') > limpio.rfind(','):
            res = _a_float(limpio.replace(',', ''))
        else:
            res = _a_float(limpio.replace('.', '').replace(',', '.'))
    elif tiene_punto:
        partes = limpio.split('.')
        if len(partes) > 2 or len(partes[-1]) == 3:
            res = _a_float(limpio.replace('.', ''))
        else:
            res = _a_float(limpio)
    elif tiene_coma:
        if limpio.count(',') > 1:
            res = _a_float(limpio.replace(',', ''))
        else:
            res = _a_float(limpio.replace(',', '.'))
    else:
        res = _a_float(limpio)

    if math.isnan(res) or math.isinf(res):
        return 0.0
    if negativo_contable:
        res = -abs(res)
    return res


def detect_currency(valor: Any) -> str:
    """Detecta la moneda de un texto de monto: USD, EUR o ARS (por defecto)."""
    if _es_vacio(valor) or valor == '':
        return 'ARS'
    texto = str(valor).upper()
    if 'USD' in texto or 'U$S' in texto or 'US$' in texto or 'DOLAR' in texto or 'DÓLAR' in texto:
        return 'USD'
    if 'EUR' in texto:
        return 'EUR'
    return 'ARS'


def _fecha_segura(anio: int, mes: int, dia: int) -> Optional[date]:
    if anio < 100:
        anio += 2000
    try:
        return date(anio, mes, dia)
    except ValueError:
        return None


def parse_excel_date(valor: Any) -> Optional[date]:
    """
    Convierte un valor de celda a fecha (día calendario, sin zona horaria).

    Acepta seriales de Excel (45689 -> 2025-02-01), textos DD/MM/YYYY,
    DD-MM-YYYY (años de dos dígitos se suman a 2000), YYYY-MM-DD y objetos
    date/datetime. Como último recurso usa pandas con dayfirst=True.
    Devuelve None si no puede interpretarse: None es "fecha desconocida".
    """
    if _es_vacio(valor):
        return None
    if isinstance(valor, bool):
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor

    if isinstance(valor, (int, float, np.number)):
        serial = float(valor)
        if serial <= 0 or math.isinf(serial):
            return None
        try:
            return UNIX_EPOCH + timedelta(days=math.floor(serial) - EXCEL_EPOCH_OFFSET)
        except OverflowError:
            return None

    texto = str(valor).strip()
    if not texto:
        return None

    m = _RE_FECHA_YMD.match(texto)
    if m:
        return _fecha_segura(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _RE_FECHA_DMY.match(texto)
    if m:
        return _fecha_segura(int(m.group(3)), int(m.group(2)), int(m.group(1)))

    try:
        fecha = pd.to_datetime(texto, dayfirst=True, errors='coerce')
    except (ValueError, TypeError, OverflowError):
        return None
    if fecha is None or pd.isna(fecha):
        return None
    return fecha.date()


def fecha_iso(fecha: Optional[date]) -> Optional[str]:
    return fecha.isoformat() if fecha else None


def texto_celda(valor: Any) -> str:
    """Texto limpio de una celda; los enteros leídos como float pierden el '.0'."""
    if _es_vacio(valor):
        return ''
    if isinstance(valor, float) and valor.is_integer():
        return str(int(valor))
    if isinstance(valor, datetime):
        return valor.date().isoformat()
    if isinstance(valor, date):
        return valor.isoformat()
    return str(valor).strip()


def normalizar_encabezado(valor: Any, compacto: bool = False) -> str:
    """
    Normaliza un encabezado: mayúsculas, sin tildes y espacios colapsados.
    Con compacto=True elimina todos los espacios ("A COBRAR SIN IVA" -> "ACOBRARSINIVA").
    """
    texto = unicodedata.normalize('NFD', str(valor).strip().upper())
    texto = ''.join(ch for ch in texto if unicodedata.category(ch) != 'Mn')
    texto = unicodedata.normalize('NFC', texto)
    if compacto:
        return re.sub(r"\s+", "", texto)
    return re.sub(r"\s+", " ", texto)


def formato_moneda_ar(valor: float, decimales: int = 2) -> str:
    """Formatea un monto como en es-AR: $ 1.234,56"""
    try:
        num = float(valor)
    except (ValueError, TypeError):
        return str(valor)
    texto = "{:,.{}f}".format(abs(num), decimales).replace(",", "X").replace(".", ",").replace("X", ".")
    return f"-$ {texto}" if num < 0 else f"$ {texto}"
