import pytest

from neuropipe import Process


class FakeBackend:
    """In-memory backend: tags every item with the step that touched it."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []

    def _step(self, op, inputs, *args):
        self.calls.append((op, args))
        if op == self.fail_on:
            raise RuntimeError(f"{op} exploded")
        return [f"{x}|{op}" for x in inputs or []]

    def review_raw_files(self, subject, raw_files):
        self.calls.append(("review_raw_files", (subject, tuple(raw_files))))
        if self.fail_on == "review_raw_files":
            raise RuntimeError("cannot read raw files")
        return [f"{subject}:{len(raw_files)}"]

    def notch_filter(self, inputs, frequency):
        return self._step("notch_filter", inputs, frequency)

    def band_pass_filter(self, inputs, frequency):
        return self._step("band_pass_filter", inputs, frequency)

    def power_spectrum_density(self, inputs, window_length):
        return self._step("power_spectrum_density", inputs, window_length)

    def ica(self, inputs, number_of_components):
        return self._step("ica", inputs, number_of_components)

    def convert_to_bids(self, inputs, folder, data_file_format):
        return self._step("convert_to_bids", inputs, folder, data_file_format)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def notch():
    return Process("Notch Filter", "EEG", {"Frequency": [50.0]})


@pytest.fixture
def bandpass():
    return Process("Band-Pass Filter", "EEG", {"Frequency": [1.0, 40.0]})


@pytest.fixture
def ica():
    return Process("ICA", "EEG", {"NumberOfComponents": 20})


@pytest.fixture(autouse=True)
def _no_user_config(monkeypatch):
    monkeypatch.delenv("NEUROPIPE_CONFIG", raising=False)
