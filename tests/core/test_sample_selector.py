# tests/core/test_sample_selector.py
import pytest

from xml_introspect.model import RequiredChildRule, SamplingOptions, SamplingStrategy
from xml_introspect.sampling.completion import CompletionPolicy
from xml_introspect.sampling.selector import SampleSelector
from conftest import WORDNET_TAGS


@pytest.fixture
def selector():
    # Geen completion rules: de selectie moet exact de bron weerspiegelen
    return SampleSelector(completion=CompletionPolicy())


def _options(**overrides) -> SamplingOptions:
    return SamplingOptions(**overrides)


def _all_tags(elements):
    return {node.tag for element in elements for node in element.iter_subtree()}


@pytest.mark.parametrize("strategy", list(SamplingStrategy))
@pytest.mark.parametrize("max_elements", [1, 2, 3, 7, 100])
def test_selection_never_exceeds_max_elements(selector, wordnet_profile, strategy, max_elements):
    options = _options(max_elements=max_elements, strategy=strategy, random_seed=3)
    selection = selector.select(wordnet_profile, options)
    assert 0 < len(selection) <= max_elements


def test_preserve_all_types_represents_every_tag(selector, wordnet_profile):
    options = _options(max_elements=100, strategy=SamplingStrategy.BALANCED, preserve_all_types=True)
    selection = selector.select(wordnet_profile, options)
    assert _all_tags(selection) == set(WORDNET_TAGS)


def test_scenario_first_strategy_with_single_slot(selector, analyzer):
    """Scenario: max_elements=1 met 'first' levert alleen A op."""
    profile = analyzer.analyze('<Root><A id="1"/><B ref="1"/></Root>')
    options = _options(
        max_elements=1,
        strategy=SamplingStrategy.FIRST,
        preserve_all_types=False,
        relationship_attributes=["ref"],
    )
    selection = selector.select(profile, options)

    assert len(selection) == 1
    assert selection[0].tag == "A"


def test_scenario_preserve_types_with_tight_budget(selector, analyzer):
    """Scenario: 5 tags, max 3 -> precies 3 tags in ontdekkingsvolgorde."""
    profile = analyzer.analyze("<Root><A/><B/><C/><D/></Root>")
    options = _options(max_elements=3, strategy=SamplingStrategy.PRESERVE_ALL_TYPES, preserve_all_types=True)

    first = selector.select(profile, options)
    second = selector.select(profile, options)

    assert [e.tag for e in first] == ["Root", "A", "B"]
    assert [e.tag for e in second] == ["Root", "A", "B"]


def test_representative_is_most_diverse_example(selector, analyzer):
    profile = analyzer.analyze('<r><x/><x a="1"><y/></x><x b="2"/></r>')
    options = _options(max_elements=2, strategy=SamplingStrategy.PRESERVE_ALL_TYPES)
    selection = selector.select(profile, options)

    x = [e for e in selection if e.tag == "x"][0]
    assert x.attributes == {"a": "1"}


def test_first_strategy_is_idempotent(selector, wordnet_profile):
    options = _options(max_elements=5, strategy=SamplingStrategy.FIRST)
    first = [e.model_dump() for e in selector.select(wordnet_profile, options)]
    second = [e.model_dump() for e in selector.select(wordnet_profile, options)]
    assert first == second


def test_seeded_random_is_reproducible(selector, analyzer):
    xml = "<r>" + "".join(f'<i id="i{n}"/>' for n in range(5)) + "".join(f'<j id="j{n}"/>' for n in range(5)) + "</r>"
    profile = analyzer.analyze(xml)
    options = _options(max_elements=4, strategy=SamplingStrategy.RANDOM, preserve_all_types=False, random_seed=42)

    first = [e.get_id() for e in selector.select(profile, options)]
    second = [e.get_id() for e in selector.select(profile, options)]
    assert first == second
    assert len(first) == 4


def test_balanced_spreads_budget_over_tags(selector, analyzer):
    xml = "<r>" + "<a/>" * 5 + "<b/>" * 5 + "<c/>" * 5 + "</r>"
    profile = analyzer.analyze(xml)
    options = _options(max_elements=5, strategy=SamplingStrategy.BALANCED, preserve_all_types=False)

    tags = [e.tag for e in selector.select(profile, options)]
    # 5 over 3 tags: 2, 2, 1
    assert tags == ["a", "a", "b", "b", "c"]


def test_element_type_limits_are_respected(selector, analyzer):
    xml = "<r>" + "<a/>" * 5 + "<b/>" * 5 + "</r>"
    profile = analyzer.analyze(xml)
    options = _options(max_elements=10, strategy=SamplingStrategy.FIRST, preserve_all_types=False,
                       element_type_limits={"a": 1})

    tags = [e.tag for e in selector.select(profile, options)]
    assert tags.count("a") == 1
    assert tags.count("b") == 5


def test_referenced_elements_are_pulled_in(selector, wordnet_profile):
    """Een Sense met synset-verwijzing trekt de bijbehorende Synset mee."""
    # Alleen Sense mag via de strategie gekozen worden
    blocked = ["Lexicon", "LexicalEntry", "Lemma", "Synset", "Definition", "SynsetRelation"]
    options = _options(max_elements=4, strategy=SamplingStrategy.FIRST, preserve_all_types=False,
                       element_type_limits={tag: 0 for tag in blocked})
    result = selector.select_with_report(wordnet_profile, options)

    # Synsets (depth 2) sorteren voor de Senses (depth 3)
    assert [e.get_id() for e in result.elements] == ["syn1", "syn2", "s1", "s2"]
    assert result.unresolved_references == []


def test_subtree_is_never_selected_twice(selector, analyzer):
    """Scenario: een kind dat al los gekozen is, komt niet nog eens mee met zijn ouder."""
    profile = analyzer.analyze('<r><p id="p1"><c id="c1"/></p><p id="p2"><c id="c2" x="1" y="2"/></p></r>')
    options = _options(max_elements=10, strategy=SamplingStrategy.BALANCED, preserve_all_types=True)
    selection = selector.select(profile, options)

    ids = [node.get_id() for element in selection if element.depth > 0
           for node in element.iter_subtree() if node.get_id()]
    assert sorted(ids) == ["c1", "c2", "p1"]
    assert [e.tag for e in selection] == ["r", "p", "c"]


def test_unresolved_references_are_reported(selector, analyzer):
    profile = analyzer.analyze('<Root><X id="x1" target="missing"/></Root>')
    result = selector.select_with_report(profile, _options(max_elements=10))

    assert result.unresolved_references == ["missing"]


def test_selection_is_sorted_by_depth(selector, wordnet_profile):
    options = _options(max_elements=20, strategy=SamplingStrategy.FIRST, preserve_all_types=True)
    depths = [e.depth for e in selector.select(wordnet_profile, options)]
    assert depths == sorted(depths)


def test_max_depth_prunes_cloned_subtrees(selector, analyzer):
    profile = analyzer.analyze("<r><a><b><c><d/></c></b></a></r>")
    options = _options(max_elements=1, max_depth=1, strategy=SamplingStrategy.FIRST, preserve_all_types=False)
    selection = selector.select(profile, options)

    assert [node.tag for node in selection[0].iter_subtree()] == ["a", "b"]
    # Profile blijft onaangetast
    assert profile.element_types["a"].examples[0].children[0].children


def test_completion_runs_on_clones_only(analyzer):
    profile = analyzer.analyze('<Root><Synset id="s1"/></Root>')
    policy = CompletionPolicy({"Synset": [RequiredChildRule(tag="Definition", text="Sample definition for {id}")]})
    result = SampleSelector(completion=policy).select_with_report(
        profile, _options(max_elements=5, strategy=SamplingStrategy.FIRST, preserve_all_types=False)
    )

    synset = result.elements[0]
    assert [c.tag for c in synset.children] == ["Definition"]
    assert synset.children[0].text == "Sample definition for s1"
    assert result.synthesized_children == 1
    assert profile.element_types["Synset"].examples[0].children == []


def test_invalid_max_elements_raises(selector, wordnet_profile):
    with pytest.raises(ValueError, match="max_elements"):
        selector.select(wordnet_profile, _options(max_elements=0))


def test_empty_profile_raises(selector, analyzer):
    with pytest.raises(ValueError, match="root element"):
        selector.select(analyzer.analyze(""), _options(max_elements=5))


def test_candidate_budget(wordnet_profile):
    assert _options(max_elements=3).candidate_budget == 30
    assert _options(max_elements=5000).candidate_budget == 10000
