"""HDF5 frame writer.

Writes one file per quantity per output frame into the output directory:

- every field of the evolving group: ``<name>_<frame>.h5``
- derived moments, recomputed from the current state just before writing:
  ``numDensity<Sp>_<frame>.h5``, ``momentum<Sp>_<frame>.h5``, ...
- buffered scalar time series (flushed): ``<series>_<frame>.h5``

Any failure to persist is fatal and propagates as
:class:`~vmsim.errors.OutputError`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from vmsim.core.bases import UpdateOperator, run_operator
from vmsim.core.field import Field
from vmsim.core.state import FieldGroup
from vmsim.diagnostics.timeseries import TimeSeries
from vmsim.errors import OutputError

logger = logging.getLogger(__name__)


@dataclass
class DerivedMoment:
    """A moment recomputed at every frame.

    Attributes:
        operator: Moment reduction operator.
        source: Name of the distribution field it reads.
        output: Field receiving the moment.
    """

    operator: UpdateOperator
    source: str
    output: Field


class FrameWriter:
    """Persist the evolving state and diagnostics for one frame.

    Args:
        output_dir: Directory for frame files; created if missing.
        state: Evolving field group.
        moments: Derived moments written with every frame.
        series: Time series flushed with every frame.
        prefix: Optional file-name prefix.
    """

    def __init__(
        self,
        output_dir: str | Path,
        state: FieldGroup,
        moments: Sequence[DerivedMoment] = (),
        series: Sequence[TimeSeries] = (),
        prefix: str = "",
    ) -> None:
        self.output_dir = Path(output_dir)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputError(f"cannot create output directory {self.output_dir}: {exc}") from exc
        self.state = state
        self.moments = list(moments)
        self.series = list(series)
        self.prefix = prefix
        self.frames_written: list[tuple[int, float]] = []

    def path_for(self, name: str, frame: int) -> Path:
        return self.output_dir / f"{self.prefix}{name}_{frame}.h5"

    def compute_moments(self, time: float) -> None:
        for m in self.moments:
            run_operator(m.operator, time, 0.0, [self.state[m.source]], [m.output])

    def write_frame(self, frame: int, time: float) -> list[Path]:
        """Write all quantities for ``frame`` tagged with ``time``."""
        logger.info("Writing data at time %g (frame %d) ...", time, frame)
        written: list[Path] = []

        for name, fld in self.state.items():
            written.append(fld.write(self.path_for(name, frame), time, frame))

        self.compute_moments(time)
        for m in self.moments:
            written.append(m.output.write(self.path_for(m.output.name, frame), time, frame))

        for ts in self.series:
            written.append(ts.write(self.path_for(ts.name, frame)))

        self.frames_written.append((frame, time))
        return written
