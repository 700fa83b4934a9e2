"""
Plain-text output modules.

Each writer owns one file handle shared by all worker threads; every record
is written and flushed under a lock so records never interleave. Write
failures are logged and never change the candidate being recorded.

Columns are tab-separated; distances in Mpc, energies in EeV.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.modules.module import Module

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TextWriter:
    """Line-oriented, thread-safe, append-only text file."""

    def __init__(self, filename: PathLike, header: str = ""):
        self.filename = Path(filename)
        self._lock = threading.Lock()
        self._file = open(self.filename, "w", encoding="utf-8")
        if header:
            self._file.write(header)
            self._file.flush()

    def write(self, record: str) -> bool:
        """
        Append one record.

        Returns:
            True if written, False if the write failed (the error is logged)
        """
        try:
            with self._lock:
                self._file.write(record)
                self._file.flush()
        except (OSError, ValueError) as e:  # ValueError: file already closed
            logger.error("Failed to write to %s: %s", self.filename, e)
            return False
        return True

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()


def _vec(v, fmt: str) -> str:
    return "\t".join(format(x, fmt) for x in v)


def format_event_3d(c: Candidate) -> str:
    """Current and source state of a candidate as one 3-D event record."""
    return "\t".join([
        f"{c.trajectory_length / units.Mpc:8.3f}",
        f"{c.current.id:10d}",
        f"{c.source.id:10d}",
        f"{c.current.energy / units.EeV:.4g}",
        f"{c.source.energy / units.EeV:.4g}",
        _vec(c.current.position / units.Mpc, "9.4f"),
        _vec(c.source.position / units.Mpc, "9.4f"),
        _vec(c.current.direction, "8.5f"),
        _vec(c.source.direction, "8.5f"),
        f"{c.redshift:1.3f}",
    ]) + "\n"


def format_event_1d(c: Candidate, distance: Optional[float] = None) -> str:
    """
    Current and source state of a candidate as one 1-D event record.

    Column D is the source x-position unless `distance` [m] is given.
    """
    if distance is None:
        distance = c.source.position[0]
    return "\t".join([
        f"{c.current.id:10d}",
        f"{c.current.energy / units.EeV:.4g}",
        f"{distance / units.Mpc:9.4f}",
        f"{c.source.id:10d}",
        f"{c.source.energy / units.EeV:.4g}",
    ]) + "\n"


HEADER_3D = (
    "# D\tID\tID0\tE\tE0\tX\tY\tZ\tX0\tY0\tZ0\tPx\tPy\tPz\tP0x\tP0y\tP0z\tz\n"
    "#\n"
    "# D           Trajectory length [Mpc]\n"
    "# ID          Particle type (PDG MC numbering scheme)\n"
    "# E           Energy [EeV]\n"
    "# X, Y, Z     Position [Mpc]\n"
    "# Px, Py, Pz  Heading (unit vector of momentum)\n"
    "# z           Redshift\n"
    "# Initial state: ID0, E0, ...\n"
    "#\n"
)

HEADER_1D = (
    "#ID\tE\tD\tID0\tE0\n"
    "#\n"
    "# ID  Particle type\n"
    "# E   Energy [EeV]\n"
    "# D   Comoving source distance [Mpc]\n"
    "# ID0 Initial particle type\n"
    "# E0  Initial energy [EeV]\n"
)

HEADER_1D_TRAJECTORY = HEADER_1D.replace("Comoving source distance", "Comoving trajectory length")


class TextOutput(Module):
    """Base class of modules writing to a TextWriter."""

    header = ""

    def __init__(self, filename: PathLike):
        self.writer = TextWriter(filename, self.header)

    @property
    def filename(self) -> Path:
        return self.writer.filename

    def close(self) -> None:
        self.writer.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def description(self) -> str:
        return f"{type(self).__name__}, filename: {self.filename}"


class TrajectoryOutput(TextOutput):
    """Records the current state at every step."""

    header = (
        "# D\tID\tE\tX\tY\tZ\tPx\tPy\tPz\n"
        "#\n"
        "# D           Trajectory length [Mpc]\n"
        "# ID          Particle type (PDG MC numbering scheme)\n"
        "# E           Energy [EeV]\n"
        "# X, Y, Z     Position [Mpc]\n"
        "# Px, Py, Pz  Heading (unit vector of momentum)\n"
        "#\n"
    )

    def process(self, candidate: Candidate) -> None:
        c = candidate
        self.writer.write("\t".join([
            f"{c.trajectory_length / units.Mpc:8.3f}",
            f"{c.current.id:10d}",
            f"{c.current.energy / units.EeV:.4g}",
            _vec(c.current.position / units.Mpc, "8.8f"),
            _vec(c.current.direction, "8.5f"),
        ]) + "\n")


class ConditionalOutput(TextOutput):
    """
    Records candidates carrying a given property, then removes it.

    Removing the property prevents the same detection from being written
    again on a later pass.
    """

    header = HEADER_3D

    def __init__(self, filename: PathLike, condition: str = "Detected"):
        self.condition = condition
        super().__init__(filename)

    def process(self, candidate: Candidate) -> None:
        if not candidate.has_property(self.condition):
            return
        candidate.remove_property(self.condition)
        self.writer.write(format_event_3d(candidate))

    @property
    def description(self) -> str:
        return f"ConditionalOutput, condition: {self.condition}, filename: {self.filename}"


class TrajectoryOutput1D(TextOutput):
    """Records x-position, type and energy at every step."""

    header = (
        "#X\tID\tE\n"
        "#\n"
        "# X  Position [Mpc]\n"
        "# ID Particle type\n"
        "# E  Energy [EeV]\n"
    )

    def process(self, candidate: Candidate) -> None:
        c = candidate
        self.writer.write(
            f"{c.current.position[0] / units.Mpc:8.4f}\t"
            f"{c.current.id:10d}\t"
            f"{c.current.energy / units.EeV:.4g}\n"
        )


class EventOutput1D(TextOutput):
    """Records candidates carrying the 'Detected' property, then removes it."""

    header = HEADER_1D

    def process(self, candidate: Candidate) -> None:
        if not candidate.has_property("Detected"):
            return
        candidate.remove_property("Detected")
        self.writer.write(format_event_1d(candidate))
