# tests/core/test_report_service.py
import json

import pandas as pd
import pytest

from xml_introspect.services.report_service import REPORT_COLUMNS, ProfileReportService


@pytest.fixture
def service():
    return ProfileReportService()


def test_to_frame_has_one_row_per_tag(service, wordnet_profile):
    df = service.to_frame(wordnet_profile)

    assert list(df.columns) == REPORT_COLUMNS
    assert len(df) == len(wordnet_profile.element_types)
    # Meest voorkomende tags eerst; bij gelijke telling blijft de ontdekkingsvolgorde
    assert df.iloc[0]["tag"] == "LexicalEntry"
    assert df.iloc[0]["count"] == 2


def test_to_frame_flattens_lists(service, wordnet_profile):
    df = service.to_frame(wordnet_profile).set_index("tag")

    assert df.loc["Synset", "attributes"] == "id, ili, partOfSpeech, dc:subject"
    assert df.loc["LexicalEntry", "children"] == "Lemma, Sense"
    assert df.loc["Sense", "example_path"] == "/LexicalResource/Lexicon/LexicalEntry/Sense"
    assert bool(df.loc["Definition", "text_seen"]) is True


def test_empty_profile_gives_empty_frame(service, analyzer):
    df = service.to_frame(analyzer.analyze(""))
    assert df.empty
    assert list(df.columns) == REPORT_COLUMNS


def test_export_csv(service, wordnet_profile, tmp_path):
    path = service.export(wordnet_profile, tmp_path / "out" / "report.csv")

    df = pd.read_csv(path)
    assert path.exists()
    assert set(df["tag"]) == set(wordnet_profile.element_types)


def test_export_json(service, wordnet_profile, tmp_path):
    path = service.export(wordnet_profile, tmp_path / "report.json")

    records = json.loads(path.read_text(encoding="utf-8"))
    assert {record["tag"] for record in records} == set(wordnet_profile.element_types)


def test_export_rejects_unknown_format(service, wordnet_profile, tmp_path):
    with pytest.raises(ValueError, match="Unsupported report format"):
        service.export(wordnet_profile, tmp_path / "report.xlsx")


def test_summary(service, wordnet_profile):
    summary = service.summary(wordnet_profile)
    assert summary["root_element"] == "LexicalResource"
    assert summary["distinct_tags"] == 8
    assert summary["common_elements"][0] == {"name": "LexicalEntry", "count": 2}
