"""
Tests for ingestion, analysis-set filtering and change scores.
"""

import numpy as np
import pandas as pd
import pytest

from vaxreanalysis.errors import DataError, MissingColumnError, OutOfRangeError
from vaxreanalysis.preprocessing import (
    AnalysisSetCriteria,
    add_change_score,
    describe_scores,
    ensure_participant_id,
    filter_analysis_set,
    filter_counts,
    load_participants,
    prepare_participants,
    set_reference_condition,
)


class TestPrepareParticipants:
    """Test validation and ingestion of the raw export."""

    def test_id_alias_renamed(self, raw_participants):
        df = prepare_participants(raw_participants)
        assert "participant_id" in df.columns
        assert "ParticipantID" not in df.columns

    def test_reverse_coding_applied(self, raw_participants):
        df = prepare_participants(raw_participants)
        assert (df["item2_pre"] == 7 - raw_participants["item2_pre"]).all()
        assert (df["item1_pre"] == raw_participants["item1_pre"]).all()

    def test_reverse_coding_configurable(self, raw_participants):
        df = prepare_participants(raw_participants, reverse_items=())
        assert (df["item2_pre"] == raw_participants["item2_pre"]).all()

    def test_control_is_reference(self, raw_participants):
        df = prepare_participants(raw_participants)
        assert list(df["Condition"].cat.categories) == ["Control", "Treatment"]

    def test_raw_not_modified(self, raw_participants):
        before = raw_participants.copy()
        prepare_participants(raw_participants)
        pd.testing.assert_frame_equal(raw_participants, before)

    def test_missing_column(self, raw_participants):
        with pytest.raises(MissingColumnError):
            prepare_participants(raw_participants.drop(columns="item3_post"))

    def test_out_of_range(self, raw_participants):
        raw_participants.loc[0, "pretest"] = 7
        with pytest.raises(OutOfRangeError):
            prepare_participants(raw_participants)

    def test_no_reference_condition(self, raw_participants):
        with pytest.raises(DataError):
            set_reference_condition(raw_participants.assign(Condition="Treatment"))

    def test_missing_condition_stays_missing(self, raw_participants):
        raw_participants.loc[3, "Condition"] = np.nan
        df = prepare_participants(raw_participants)
        assert pd.isna(df.loc[3, "Condition"])
        assert list(df["Condition"].cat.categories) == ["Control", "Treatment"]
        assert "nan" not in set(df["Condition"].dropna().astype(str))


class TestParticipantId:
    """Test normalization of the participant identifier column."""

    def test_canonical_column_wins(self):
        df = pd.DataFrame({"pid": ["x", "y"], "participant_id": ["a", "b"], "score": [1, 2]})
        out = ensure_participant_id(df)
        assert out["participant_id"].tolist() == ["a", "b"]
        assert list(out.columns) == ["participant_id", "score"]

    def test_leftmost_alias_renamed(self):
        df = pd.DataFrame({"score": [1, 2], "ParticipantID": ["a", "b"], "pid": ["x", "y"]})
        out = ensure_participant_id(df)
        assert out["participant_id"].tolist() == ["a", "b"]
        assert "pid" not in out.columns
        assert "ParticipantID" in df.columns

    def test_blank_ids_warn(self):
        df = pd.DataFrame({"ParticipantID": ["a", " ", None, "d"]})
        with pytest.warns(UserWarning, match="2 of 4 rows"):
            out = ensure_participant_id(df)
        assert out["participant_id"].isna().tolist() == [False, True, True, False]

    def test_no_id_column(self):
        with pytest.raises(MissingColumnError, match="ParticipantID"):
            ensure_participant_id(pd.DataFrame({"score": [1, 2]}))

    def test_missing_ids_not_stringified(self, raw_participants):
        raw_participants.loc[2, "ParticipantID"] = np.nan
        with pytest.warns(UserWarning):
            df = prepare_participants(raw_participants)
        assert pd.isna(df.loc[2, "participant_id"])


class TestLoadParticipants:
    def test_reads_csv(self, raw_participants, tmp_path):
        path = tmp_path / "participants.csv"
        raw_participants.to_csv(path, index=False, encoding="utf-8-sig")
        df = load_participants(path)
        assert len(df) == len(raw_participants)
        assert df["participant_id"].iloc[0] == "P000"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_participants(tmp_path / "nope.csv")


class TestFilters:
    """Test the eligible / returned / not-excluded filter."""

    def test_counts(self, participants):
        counts = filter_counts(participants)
        assert counts == {"n_total": 60, "n_eligible": 60, "n_returned": 55, "n_analysis": 54}

    def test_filter(self, participants):
        analysis = filter_analysis_set(participants)
        assert len(analysis) == 54
        assert (analysis["Returned"] == 1).all()
        assert (analysis["Excluded"] == 0).all()

    def test_custom_criteria(self, participants):
        criteria = AnalysisSetCriteria(returned_value=0)
        assert len(filter_analysis_set(participants, criteria)) == 5

    def test_empty_analysis_set(self, participants):
        with pytest.raises(DataError):
            filter_analysis_set(participants.assign(Excluded=1))

    def test_change_score(self, three_participants):
        out = add_change_score(three_participants)
        assert out["change"].tolist() == [1.0, 1.0, 0.0]
        assert "change" not in three_participants.columns

    def test_describe_scores(self, analysis):
        table = describe_scores(analysis, ["pretest", "posttest"])
        assert list(table["variable"]) == ["pretest", "posttest"]
        assert (table["n"] == 54).all()
        assert table["min"].min() >= 1
        assert table["max"].max() <= 6
