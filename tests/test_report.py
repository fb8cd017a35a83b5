from pathlib import Path

import pandas as pd

from neuropipe import Pipeline
from neuropipe.pipeline.report import history_frame, history_to_csv, render_report


def test_history_frame_columns(notch, bandpass):
    p = Pipeline("demo")
    p.insert(notch)
    p.insert(bandpass)
    p.swap(1, 2)

    df = history_frame(p.history)

    assert list(df.columns[:2]) == ["actor", "timestamp"]
    assert len(df) == len(p.history)
    assert df["actor"].iloc[0] == "Pipeline.create"
    row = df[df["actor"] == "Pipeline.insert"].iloc[0]
    assert row["extra_1"] == "Notch Filter"
    assert row["extra_2"] == "<process Notch Filter>"
    assert df["actor"].iloc[-1] == "Pipeline.swap"


def test_history_csv(tmp_path: Path, notch):
    p = Pipeline()
    p.insert(notch)
    out = history_to_csv(p.history, tmp_path / "out" / "history.csv")

    df = pd.read_csv(out)
    assert df["actor"].tolist() == ["Pipeline.create", "Pipeline.insert"]


def test_render_report(tmp_path: Path, notch, ica):
    p = Pipeline("demo")
    p.insert(notch)
    p.insert(ica)
    p.documentation = "Resting state cleanup"

    out = render_report(p, tmp_path / "report.md")
    text = out.read_text()

    assert text.startswith("# Pipeline demo")
    assert "Resting state cleanup" in text
    assert "**Notch Filter** (`process_notch`)" in text
    assert "NumberOfComponents: 20" in text
    assert "| Pipeline.create |" in text


def test_render_report_empty(tmp_path: Path):
    text = render_report(Pipeline(), tmp_path / "r.md").read_text()
    assert "The pipeline is empty." in text
