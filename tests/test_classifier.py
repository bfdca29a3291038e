import pytest
from cortexmem.core.constants import SECTORS
from cortexmem.memory.classifier import SectorClassifier

@pytest.fixture
def clf():
    return SectorClassifier()

def test_episodic_text(clf):
    c = clf.classify("I went to the dentist yesterday")
    assert c.primary == "episodic"
    # two episodic hits at weight 1.2, nothing else
    assert c.confidence == pytest.approx(2.4 / 3.4)
    assert c.additional == []

def test_no_match_defaults_to_semantic(clf):
    c = clf.classify("zzz qqq")
    assert c.primary == "semantic"
    assert c.confidence == pytest.approx(0.2)

def test_forced_sector_short_circuits(clf):
    c = clf.classify("I went to the dentist yesterday", sector="procedural")
    assert c.primary == "procedural"
    assert c.confidence == 1.0
    assert c.additional == []

def test_additional_sectors(clf):
    c = clf.classify("I feel happy that I visited Paris")
    assert c.primary == "episodic"
    assert "emotional" in c.additional

def test_classification_is_idempotent(clf):
    text = "I think I should install the new script before the meeting tomorrow"
    a = clf.classify(text)
    b = clf.classify(text)
    assert a.primary == b.primary
    assert a.confidence == b.confidence
    assert a.scores == b.scores

def test_confidence_bounded(clf):
    text = " ".join(["love hate like feel felt happy sad"] * 20)
    c = clf.classify(text)
    assert 0.0 <= c.confidence <= 1.0
    assert set(c.scores) == set(SECTORS)

def test_swappable_table():
    import re
    table = {"semantic": {"decay_lambda": 0.01, "weight": 1.0, "patterns": (re.compile(r"\bfoo\b", re.I),)}}
    c = SectorClassifier(configs=table).classify("foo bar foo")
    assert c.primary == "semantic"
    assert c.scores["semantic"] == 2.0

@pytest.mark.parametrize("text,worth,reason", [
    ("hi", False, "Text too short"),
    ("search for cheap flights", False, "Common phrase or command"),
    ("My name is Bob", True, "Contains personal information"),
    ("Nice weather", False, "No significant content detected"),
    ("The deployment pipeline takes ten minutes", True, "Sufficient content length"),
])
def test_is_worth_remembering(clf, text, worth, reason):
    assert clf.is_worth_remembering(text) == (worth, reason)

def test_decay_rates_order(clf):
    assert clf.decay_lambda("semantic") < clf.decay_lambda("reflective") < clf.decay_lambda("procedural")
    assert clf.decay_lambda("procedural") < clf.decay_lambda("episodic") < clf.decay_lambda("emotional")
