# tests/conftest.py
import pytest

from xml_introspect.dom.builder import StructureAnalyzer

WORDNET_XML = """<?xml version="1.0" encoding="UTF-8"?>
<LexicalResource xmlns:dc="http://purl.org/dc/elements/1.1/">
  <Lexicon id="ewn" label="Test WordNet" language="en" version="1.0">
    <LexicalEntry id="w1">
      <Lemma writtenForm="dog" partOfSpeech="n"/>
      <Sense id="s1" synset="syn1"/>
    </LexicalEntry>
    <LexicalEntry id="w2">
      <Lemma writtenForm="cat" partOfSpeech="n"/>
      <Sense id="s2" synset="syn2"/>
    </LexicalEntry>
    <Synset id="syn1" ili="i1" partOfSpeech="n" dc:subject="animal">
      <Definition>a domesticated canid</Definition>
      <SynsetRelation relType="hypernym" target="syn2"/>
    </Synset>
    <Synset id="syn2" ili="i2" partOfSpeech="n">
      <Definition>a small feline</Definition>
    </Synset>
  </Lexicon>
</LexicalResource>
"""

WORDNET_TAGS = [
    "LexicalResource", "Lexicon", "LexicalEntry", "Lemma", "Sense", "Synset", "Definition", "SynsetRelation",
]


@pytest.fixture
def analyzer():
    """Analyzer met vaste limieten, onafhankelijk van settings.json."""
    return StructureAnalyzer(
        max_depth=1000,
        max_total_elements=100000,
        examples_per_type=5,
        example_child_limit=25,
        example_depth_limit=6,
        top_n=20,
        show_progress=False,
    )


@pytest.fixture
def wordnet_xml():
    return WORDNET_XML


@pytest.fixture
def wordnet_profile(analyzer):
    return analyzer.analyze(WORDNET_XML)
