"""Tests for PropagationEngine."""

import logging

import numpy as np
import pytest

from cosmic_mc.config import SimulationConfig
from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.particle import PHOTON, nucleus_id
from cosmic_mc.modules.module import Module
from cosmic_mc.modules.observer import (
    BOUNDARY_TOLERANCE,
    Observer,
    ObserverPoint,
    ObserverSmallSphere,
)
from cosmic_mc.modules.output import EventOutput1D
from cosmic_mc.modules.propagation import MaximumTrajectoryLength, SimplePropagation
from cosmic_mc.source import (
    Source,
    SourceDirection,
    SourceEnergy,
    SourceParticleType,
    SourcePosition,
    SourcePowerLawSpectrum,
    SourceUniform1D,
)
from cosmic_mc.transport.engine import PropagationEngine, _split

PROTON = nucleus_id(1, 1)


class Deactivate(Module):
    def process(self, candidate):
        candidate.active = False


class Count(Module):
    def __init__(self):
        self.calls = 0

    def process(self, candidate):
        self.calls += 1


class FailFor(Module):
    """Raises for candidates of one particle type, deactivates the rest."""

    def __init__(self, pid):
        self.pid = pid

    def process(self, candidate):
        if candidate.current.id == self.pid:
            raise RuntimeError("bad candidate")
        candidate.active = False


class EmitPhoton(Module):
    """Spawns one photon on the first step and then deactivates."""

    def process(self, candidate):
        if candidate.current.id != PHOTON and not candidate.secondaries:
            candidate.add_secondary(PHOTON, candidate.current.energy / 2)
        candidate.active = False


class RecordedPropagation(SimplePropagation):
    """Default integrator recording (bound, step) for every advance."""

    def __init__(self):
        super().__init__()
        self.advances = []

    def process(self, candidate):
        bound = candidate.next_step
        super().process(candidate)
        self.advances.append((bound, candidate.current_step))


def one_dimensional_engine(config):
    observer = Observer()
    observer.add(ObserverPoint())
    observer.set_flag("Detected")

    engine = PropagationEngine(config)
    engine.add(SimplePropagation(min_step=units.kpc, max_step=units.Mpc))
    engine.add(observer)
    return engine


class TestSplit:

    def test_split(self):
        assert _split(10, 3) == [4, 3, 3]
        assert _split(2, 4) == [1, 1, 0, 0]
        assert sum(_split(1001, 7)) == 1001


class TestRun:
    """Single-candidate propagation."""

    def test_one_dimensional_detection(self, serial_config, proton_candidate):
        """A proton 10 Mpc away is detected at x = 0."""
        engine = one_dimensional_engine(serial_config)
        assert engine.run(proton_candidate)

        assert not proton_candidate.active
        assert proton_candidate.has_property("Detected")
        assert proton_candidate.current.position[0] <= 0.0
        assert proton_candidate.trajectory_length == pytest.approx(10 * units.Mpc, abs=2 * units.kpc)

    def test_pass_stops_at_inactive(self, serial_config):
        count = Count()
        engine = PropagationEngine(serial_config)
        engine.add(Deactivate()).add(count)

        engine.run(Candidate())
        assert count.calls == 0

    def test_inactive_candidate_untouched(self, serial_config):
        count = Count()
        engine = PropagationEngine(serial_config).add(count)
        c = Candidate()
        c.active = False
        assert engine.run(c)
        assert count.calls == 0

    def test_max_steps(self, caplog):
        config = SimulationConfig(n_threads=1, show_progress=False, max_steps=25)
        count = Count()
        engine = PropagationEngine(config).add(count)
        c = Candidate()

        with caplog.at_level(logging.WARNING, logger="cosmic_mc.transport.engine"):
            assert engine.run(c)
        assert count.calls == 25
        assert not c.active
        assert "stopped after 25 steps" in caplog.text

    def test_error_isolated(self, serial_config):
        engine = PropagationEngine(serial_config).add(FailFor(PROTON))
        c = Candidate(id=PROTON)

        assert engine.run(c) is False
        assert not c.active
        assert c.get_property("Error") == "RuntimeError: bad candidate"

    def test_secondaries_recursive(self, serial_config, proton_candidate):
        engine = PropagationEngine(serial_config).add(EmitPhoton())
        engine.run(proton_candidate, recursive=True)

        (photon,) = proton_candidate.secondaries
        assert photon.current.id == PHOTON
        assert not photon.active

    def test_secondaries_not_recursive(self, serial_config, proton_candidate):
        engine = PropagationEngine(serial_config).add(EmitPhoton())
        engine.run(proton_candidate, recursive=False)

        (photon,) = proton_candidate.secondaries
        assert photon.active

    def test_description(self, serial_config):
        engine = one_dimensional_engine(serial_config)
        text = engine.description
        assert "SimplePropagation" in text
        assert "ObserverPoint" in text


class TestBatches:
    """Batch and threaded runs."""

    def test_run_candidates_with_failures(self):
        config = SimulationConfig(n_threads=4, show_progress=False)
        engine = PropagationEngine(config).add(FailFor(PHOTON))
        candidates = [Candidate(id=PHOTON if i % 5 == 0 else PROTON) for i in range(50)]

        stats = engine.run_candidates(candidates)

        assert stats['n_candidates'] == 50
        assert stats['n_failed'] == 10
        assert all(not c.active for c in candidates)
        failed = [c for c in candidates if c.has_property("Error")]
        assert len(failed) == 10
        assert all(c.current.id == PHOTON for c in failed)

    def test_run_source_threaded(self, tmp_path):
        """Every candidate is detected once and written once."""
        config = SimulationConfig(n_threads=4, show_progress=False, seed=42)
        engine = one_dimensional_engine(config)
        output = EventOutput1D(tmp_path / "events.txt")
        engine.add(output)

        source = Source()
        source.add(SourceParticleType(PROTON))
        source.add(SourcePowerLawSpectrum(units.EeV, 100 * units.EeV, -1))
        source.add(SourceUniform1D(1 * units.Mpc, 20 * units.Mpc, with_cosmology=False))
        source.add(SourceDirection())

        candidates, stats = engine.run_source(source, 200)
        output.close()

        assert len(candidates) == 200
        assert stats['n_failed'] == 0
        assert all(not c.active for c in candidates)
        lines = [line for line in (tmp_path / "events.txt").read_text().splitlines()
                 if not line.startswith("#")]
        assert len(lines) == 200

    def test_run_source_reproducible(self):
        """Equal seeds and thread counts give equal candidates."""
        source = Source()
        source.add(SourceParticleType(PROTON))
        source.add(SourcePowerLawSpectrum(units.EeV, 100 * units.EeV, -2))
        source.add(SourcePosition(5 * units.Mpc))
        source.add(SourceDirection())

        def energies(seed):
            config = SimulationConfig(n_threads=3, show_progress=False)
            engine = one_dimensional_engine(config)
            candidates, _ = engine.run_source(source, 30, seed=seed)
            return [c.source.energy for c in candidates]

        assert energies(7) == energies(7)
        assert energies(7) != energies(8)

    def test_run_source_empty(self, serial_config):
        engine = PropagationEngine(serial_config)
        candidates, stats = engine.run_source(Source().add(SourceEnergy(1.0)), 0)
        assert candidates == []
        assert stats['n_candidates'] == 0

    def test_run_source_negative(self, serial_config):
        with pytest.raises(ValueError):
            PropagationEngine(serial_config).run_source(Source(), -1)


class TestStepLimiting:
    """Boundary crossings with the default integrator settings."""

    def sphere_engine(self, config, radius, integrator_first=True):
        propagation = RecordedPropagation()
        observer = Observer().add(ObserverSmallSphere((0, 0, 0), radius))
        observer.set_flag("Detected")

        engine = PropagationEngine(config)
        modules = [propagation, observer] if integrator_first else [observer, propagation]
        for module in modules + [MaximumTrajectoryLength(10 * units.Mpc)]:
            engine.add(module)
        return engine, propagation

    @pytest.mark.parametrize("integrator_first", [True, False])
    def test_first_step_is_bounded(self, serial_config, integrator_first):
        """A sphere much smaller than min_step, just ahead, is not stepped over."""
        radius = 1 * units.kpc
        engine, propagation = self.sphere_engine(serial_config, radius, integrator_first)
        c = Candidate(id=PROTON, energy=units.EeV, position=(1.5 * units.kpc, 0, 0),
                      direction=(-1, 0, 0))

        assert radius < propagation.min_step
        assert engine.run(c)
        assert c.has_property("Detected")
        assert c.trajectory_length == pytest.approx(0.5 * units.kpc, rel=1e-5)

    def test_crossing_paths_all_detected(self, serial_config):
        """Straight paths through a 2 kpc sphere from 5 Mpc are never missed."""
        radius = 2 * units.kpc
        engine, propagation = self.sphere_engine(serial_config, radius)

        candidates = [
            Candidate(id=PROTON, energy=units.EeV,
                      position=(5 * units.Mpc, impact * radius, 0), direction=(-1, 0, 0))
            for impact in np.linspace(0.0, 0.99, 12)
        ]
        for c in candidates:
            assert engine.run(c)

        assert all(c.has_property("Detected") for c in candidates)
        assert all(np.linalg.norm(c.current.position) <= radius * (1 + BOUNDARY_TOLERANCE)
                   for c in candidates)
        assert all(step <= bound for bound, step in propagation.advances)
