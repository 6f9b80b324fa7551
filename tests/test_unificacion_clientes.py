# -*- coding: utf-8 -*-
from datetime import date

import pytest

from modelos import LedgerEntry, UnifiedQuoteRecord
from unificacion_clientes import (
    find_potential_duplicates, renombres_desde_grupos, similitud, unify_client_names,
)


def test_similitud():
    assert similitud('abc', 'abc') == 1.0
    assert similitud('', '') == 1.0
    assert similitud('google', 'google inc') == pytest.approx(0.6)


def test_find_potential_duplicates():
    grupos = find_potential_duplicates(['Google Inc', 'ABSA - LINCONL', 'Google', 'ABSA - LINCOLN'])

    assert grupos == [
        {'id': 'group-0', 'candidates': ['ABSA - LINCOLN', 'ABSA - LINCONL'], 'selected': 'ABSA - LINCOLN'},
        {'id': 'group-2', 'candidates': ['Google', 'Google Inc'], 'selected': 'Google'},
    ]


def test_find_potential_duplicates_exige_misma_inicial_y_largo():
    assert find_potential_duplicates(['Acme', 'Bcme']) == []
    assert find_potential_duplicates(['Acme', 'Acme Sociedad Anonima Argentina']) == []
    assert find_potential_duplicates(['Solo']) == []


def test_renombres_desde_grupos():
    grupos = [{'id': 'group-0', 'candidates': ['ACME SA', 'ACME S.A.', 'Acme'], 'selected': 'ACME S.A.'}]
    assert renombres_desde_grupos(grupos) == {'ACME SA': 'ACME S.A.', 'Acme': 'ACME S.A.'}


def _mov(cliente, monto):
    return LedgerEntry(id=f"{cliente}-0", client=cliente, date=date(2025, 1, 1),
                       amount=monto, original_amount=monto, number='0001-1')


def test_unify_client_names():
    quotes = [
        UnifiedQuoteRecord(id='1', source='MATCH', status='GANADA', client='ACME SA'),
        UnifiedQuoteRecord(id='2', source='MATCH', status='GANADA', client='Beta'),
    ]
    clients = [_mov('ACME SA', 100.0), _mov('ACME S.A.', 50.0)]
    audit = {'ACME SA': 100.0, 'ACME S.A.': 50.0, 'Beta': 0.0}

    nuevas, nuevos, auditoria = unify_client_names(quotes, clients, audit, {'ACME SA': 'ACME S.A.'})

    assert [q.client for q in nuevas] == ['ACME S.A.', 'Beta']
    assert [c.client for c in nuevos] == ['ACME S.A.', 'ACME S.A.']
    assert auditoria == {'ACME S.A.': 150.0, 'Beta': 0.0}
    # Las entradas quedan intactas
    assert quotes[0].client == 'ACME SA'
    assert clients[0].client == 'ACME SA'
    assert 'ACME SA' in audit


def test_unify_sin_renombres_devuelve_copias():
    quotes = [UnifiedQuoteRecord(id='1', source='MATCH', status='GANADA', client='ACME')]
    nuevas, nuevos, auditoria = unify_client_names(quotes, [], {'ACME': 1.0}, {})
    assert nuevas == quotes
    assert nuevas is not quotes
    assert auditoria == {'ACME': 1.0}
