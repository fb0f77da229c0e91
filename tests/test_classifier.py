import pytest

from cosaif.notifications.classifier import (
    KeywordClassifier,
    WholeWordClassifier,
    build_classifier,
    classify,
)
from cosaif.notifications.models import IncidentNotification


@pytest.mark.parametrize(
    "title, body, tipo, expected",
    [
        ("Alerta de mantenimiento", "", "", True),
        ("Hola", "buen día", "", False),
        ("", "", "INCIDENTE", True),
        ("", "", "incidente", True),
        ("", "Avería en el cambio 4", "", True),
        ("", "", "falla_electrica", True),
        ("Movimiento completado", "sin novedad", "movimiento", False),
        ("Reporte", "sin incidente", "", True),
        ("URGENTE", "", "", True),
    ],
)
def test_classify(title, body, tipo, expected):
    assert classify(title, body, tipo) is expected


def test_classify_treats_none_as_empty():
    assert classify(None, None, None) is False
    assert classify(None, "emergencia", None) is True


def test_classify_is_deterministic():
    results = {classify("Problema en vía", "x", "") for _ in range(5)}
    assert results == {True}


def _notif(title="", body="", **data):
    return IncidentNotification(id="n", title=title, body=body, data=data)


def test_keyword_classifier_matches_function():
    clf = KeywordClassifier()
    assert clf.is_incident(_notif("Alerta de mantenimiento"))
    assert not clf.is_incident(_notif("Hola", "buen día"))
    assert clf.is_incident(_notif(tipo="INCIDENTE"))


def test_keyword_classifier_custom_keywords():
    clf = KeywordClassifier(["Descarrilamiento"])
    assert clf.is_incident(_notif("descarrilamiento en patio"))
    assert not clf.is_incident(_notif("Alerta de mantenimiento"))


def test_whole_word_classifier_ignores_partial_words():
    clf = WholeWordClassifier()
    assert clf.is_incident(_notif("Alerta en vía 2"))
    assert not clf.is_incident(_notif("Alertas semanales"))
    assert clf.is_incident(_notif("", "hay una avería"))


def test_build_classifier_modes():
    assert type(build_classifier("substring")) is KeywordClassifier
    assert isinstance(build_classifier("word"), WholeWordClassifier)
    assert build_classifier("word", ["x"]).keywords == ("x",)
    assert build_classifier("substring", []).keywords[0] == "incidente"
