"""
Tests for wide <-> long reshaping.
"""

import numpy as np
import pandas as pd
import pytest

from vaxreanalysis.errors import DataError, IncompleteRecordError, MissingColumnError
from vaxreanalysis.preprocessing import aggregate_columns, item_columns, lengthen, split_phase, widen


@pytest.fixture
def wide():
    return pd.DataFrame({
        "participant_id": ["p2", "p1", "p3"],
        "Condition": ["Treatment", "Control", "Control"],
        "item1_pre": [3, 4, 2],
        "item2_pre": [5, 1, 6],
        "item1_post": [4, 5, 2],
        "item2_post": [5, 2, 6],
    })


VALUES = ["item1_pre", "item2_pre", "item1_post", "item2_post"]
IDS = ["participant_id", "Condition"]


class TestSplitPhase:
    def test_pre_and_post(self):
        assert split_phase("item3_pre") == ("item3", "pretest", 0)
        assert split_phase("item3_post") == ("item3", "posttest", 1)

    def test_no_suffix(self):
        with pytest.raises(DataError):
            split_phase("item3")


class TestLengthen:
    """Test wide -> long conversion."""

    def test_one_row_per_cell(self, wide):
        long = lengthen(wide, VALUES, id_columns=IDS)
        assert len(long) == 3 * 4
        assert list(long.columns) == IDS + ["item", "phase", "time", "response"]
        assert not long.duplicated(subset=["participant_id", "item", "phase"]).any()

    def test_values_carried(self, wide):
        long = lengthen(wide, VALUES, id_columns=IDS)
        row = long[(long["participant_id"] == "p1") & (long["item"] == "item2") & (long["time"] == 1)]
        assert row["response"].item() == 2
        assert row["Condition"].item() == "Control"
        assert row["phase"].item() == "posttest"

    def test_missing_phase_raises(self, wide):
        wide.loc[1, "item1_post"] = np.nan
        with pytest.raises(IncompleteRecordError):
            lengthen(wide, VALUES, id_columns=IDS)

    def test_duplicate_participant_raises(self, wide):
        doubled = pd.concat([wide, wide.iloc[[0]]], ignore_index=True)
        with pytest.raises(IncompleteRecordError):
            lengthen(doubled, VALUES, id_columns=IDS)

    def test_missing_column_raises(self, wide):
        with pytest.raises(MissingColumnError):
            lengthen(wide, VALUES + ["item3_pre"], id_columns=IDS)

    def test_aggregate(self, analysis):
        long = lengthen(aggregate_columns(analysis), ["aggregate_pre", "aggregate_post"])
        assert set(long["item"]) == {"aggregate"}
        assert len(long) == 2 * len(analysis)


class TestWiden:
    """Test long -> wide conversion and round trips."""

    def test_round_trip_wide(self, wide):
        back = widen(lengthen(wide, VALUES, id_columns=IDS), id_columns=IDS)
        expected = wide.sort_values("participant_id").reset_index(drop=True)
        pd.testing.assert_frame_equal(
            back[IDS + sorted(VALUES, key=lambda c: (not c.endswith("_pre"), c))],
            expected[IDS + sorted(VALUES, key=lambda c: (not c.endswith("_pre"), c))],
            check_dtype=False,
        )

    def test_round_trip_long(self, wide):
        long = lengthen(wide, VALUES, id_columns=IDS)
        shuffled = long.sample(frac=1.0, random_state=3)
        again = lengthen(widen(shuffled, id_columns=IDS), VALUES, id_columns=IDS)
        pd.testing.assert_frame_equal(again, long, check_dtype=False)

    def test_round_trip_items(self, analysis):
        ids = ["participant_id", "Condition"]
        long = lengthen(analysis, item_columns(), id_columns=ids)
        again = lengthen(widen(long, id_columns=ids), item_columns(), id_columns=ids)
        pd.testing.assert_frame_equal(again, long, check_dtype=False, check_categorical=False)

    def test_missing_cell_raises(self, wide):
        long = lengthen(wide, VALUES, id_columns=IDS)
        dropped = long.drop(long.index[(long["participant_id"] == "p3") & (long["time"] == 1)][:1])
        with pytest.raises(IncompleteRecordError):
            widen(dropped, id_columns=IDS)

    def test_missing_response_raises(self, wide):
        """A present cell with no value is as incomplete as an absent one."""
        long = lengthen(wide, VALUES, id_columns=IDS)
        long["response"] = long["response"].astype(float)
        long.loc[long.index[long["participant_id"] == "p1"][0], "response"] = np.nan
        with pytest.raises(IncompleteRecordError) as excinfo:
            widen(long, id_columns=IDS)
        assert excinfo.value.stage == "widen"
        assert "p1" in str(excinfo.value)

    def test_duplicate_cell_raises(self, wide):
        long = lengthen(wide, VALUES, id_columns=IDS)
        with pytest.raises(IncompleteRecordError):
            widen(pd.concat([long, long.iloc[[0]]]), id_columns=IDS)
