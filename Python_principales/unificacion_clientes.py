# -*- coding: utf-8 -*-
"""
Detección de nombres de cliente casi iguales y aplicación de renombres.

La detección sólo sugiere grupos; los renombres aprobados
(incorrecto -> correcto) se aplican después como una reescritura que
devuelve registros nuevos.
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Tuple

from rapidfuzz.distance import Levenshtein

from config_logging import log_detalle_proceso
from modelos import LedgerEntry, UnifiedQuoteRecord

# ---------------- Parámetros del negocio ----------------
UMBRAL_SIMILITUD = 0.6
MAX_DIFERENCIA_LARGO = 8


def similitud(a: str, b: str) -> float:
    """(largo mayor - distancia de edición) / largo mayor, entre 0 y 1."""
    largo = max(len(a), len(b))
    if largo == 0:
        return 1.0
    return (largo - Levenshtein.distance(a, b)) / largo


def find_potential_duplicates(nombres: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Agrupa nombres parecidos: misma inicial (sin distinguir mayúsculas),
    diferencia de largo de hasta 8 caracteres y similitud >= 0.6.

    Devuelve [{'id': 'group-<i>', 'candidates': [...], 'selected': <primero>}].
    """
    ordenados = sorted({n for n in nombres if n})
    visitados = set()
    grupos = []

    for i, actual in enumerate(ordenados):
        if actual in visitados:
            continue
        grupo = [actual]
        visitados.add(actual)

        for candidato in ordenados[i + 1:]:
            if candidato in visitados:
                continue
            if abs(len(actual) - len(candidato)) > MAX_DIFERENCIA_LARGO:
                continue
            if candidato[0].lower() != actual[0].lower():
                continue
            if similitud(actual.lower(), candidato.lower()) >= UMBRAL_SIMILITUD:
                grupo.append(candidato)
                visitados.add(candidato)

        if len(grupo) > 1:
            grupos.append({'id': f"group-{i}", 'candidates': grupo, 'selected': grupo[0]})

    log_detalle_proceso("UNIFICACION", "SUGERENCIAS", {"nombres": len(ordenados), "grupos": len(grupos)})
    return grupos


def renombres_desde_grupos(grupos: List[Dict[str, Any]]) -> Dict[str, str]:
    """Mapa incorrecto -> seleccionado a partir de grupos aprobados."""
    renombres = {}
    for grupo in grupos:
        elegido = grupo['selected']
        for nombre in grupo['candidates']:
            if nombre != elegido:
                renombres[nombre] = elegido
    return renombres


def unify_client_names(quotes: List[UnifiedQuoteRecord], clients: List[LedgerEntry],
                       audit: Dict[str, float], renombres: Dict[str, str]
                       ) -> Tuple[List[UnifiedQuoteRecord], List[LedgerEntry], Dict[str, float]]:
    """
    Aplica los renombres y devuelve copias; las entradas no se modifican.
    Si dos hojas de auditoría quedan con el mismo nombre, sus totales se suman.
    """
    if not renombres:
        return list(quotes), list(clients), dict(audit)

    nuevas_cot = [replace(q, client=renombres.get(q.client, q.client)) for q in quotes]
    nuevos_mov = [replace(c, client=renombres.get(c.client, c.client)) for c in clients]

    nueva_auditoria: Dict[str, float] = {}
    for hoja, total in audit.items():
        nombre = renombres.get(hoja, hoja)
        nueva_auditoria[nombre] = nueva_auditoria.get(nombre, 0.0) + total

    cambios = sum(1 for q in quotes if q.client in renombres) + sum(1 for c in clients if c.client in renombres)
    log_detalle_proceso("UNIFICACION", "RENOMBRES", {"reglas": len(renombres), "registros_cambiados": cambios})
    return nuevas_cot, nuevos_mov, nueva_auditoria
