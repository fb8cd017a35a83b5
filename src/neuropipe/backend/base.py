# neuropipe/backend/base.py

from __future__ import annotations

from typing import Any, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class Backend(Protocol):
    """
    Processing backend a Process delegates to.

    Each method receives the previous step's output plus the process's
    parameter values and returns a result set. Implementations should raise
    on failure rather than return an empty result.
    """

    def review_raw_files(self, subject: str, raw_files: List[str]) -> Any:
        ...

    def notch_filter(self, inputs: Any, frequency: Optional[List[float]]) -> Any:
        ...

    def band_pass_filter(self, inputs: Any, frequency: Optional[List[float]]) -> Any:
        ...

    def power_spectrum_density(self, inputs: Any, window_length: Optional[float]) -> Any:
        ...

    def ica(self, inputs: Any, number_of_components: Optional[int]) -> Any:
        ...

    def convert_to_bids(self, inputs: Any, folder: Optional[str], data_file_format: Optional[str]) -> Any:
        ...
