"""Tests for observers and observer features."""

import math

import numpy as np
import pytest

from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.errors import ConfigurationError
from cosmic_mc.core.particle import (
    ELECTRON,
    MUON,
    NU_E,
    NU_MU,
    NU_TAU,
    PHOTON,
    TAU,
    nucleus_id,
)
from cosmic_mc.modules.observer import (
    BOUNDARY_TOLERANCE,
    DetectionState,
    Observer,
    ObserverChargedLeptonVeto,
    ObserverDetectAll,
    ObserverFeature,
    ObserverLargeSphere,
    ObserverNeutrinoVeto,
    ObserverOutput1D,
    ObserverOutput3D,
    ObserverPhotonVeto,
    ObserverPoint,
    ObserverRedshiftWindow,
    ObserverSmallSphere,
)
from cosmic_mc.modules.propagation import SimplePropagation

PROTON = nucleus_id(1, 1)
R = 1 * units.Mpc


def moved(previous, current, id=PROTON, redshift=0.0):
    """Candidate whose last step went from `previous` to `current`."""
    c = Candidate(id=id, energy=units.EeV, position=previous, redshift=redshift)
    c.current.position = current
    return c


class RecordingFeature(ObserverFeature):
    """Returns a fixed verdict and records detections."""

    def __init__(self, verdict, log=None):
        self.verdict = verdict
        self.log = log if log is not None else []
        self.checked = 0

    def check_detection(self, candidate):
        self.checked += 1
        return self.verdict

    def on_detection(self, candidate):
        self.log.append(self)


class TestDetectionState:

    def test_precedence(self):
        assert DetectionState.VETO > DetectionState.DETECTED > DetectionState.NOTHING
        assert max(DetectionState.DETECTED, DetectionState.VETO) is DetectionState.VETO


class TestSmallSphere:
    """Detection on entering a sphere."""

    def test_entering(self):
        c = moved((2 * R, 0, 0), (0.5 * R, 0, 0))
        assert ObserverSmallSphere((0, 0, 0), R).check_detection(c) == DetectionState.DETECTED

    def test_already_inside(self):
        c = moved((0.8 * R, 0, 0), (0.5 * R, 0, 0))
        assert ObserverSmallSphere((0, 0, 0), R).check_detection(c) == DetectionState.NOTHING

    def test_outside_limits_step(self):
        c = moved((6 * R, 0, 0), (5 * R, 0, 0))
        feature = ObserverSmallSphere((0, 0, 0), R)
        assert feature.check_detection(c) == DetectionState.NOTHING
        assert c.next_step == pytest.approx(4 * R)

    def test_off_center(self):
        center = np.array([0.0, 3 * R, 0.0])
        c = moved((0, 6 * R, 0), (0, 3.5 * R, 0))
        feature = ObserverSmallSphere(center, R)
        assert feature.check_detection(c) == DetectionState.DETECTED

    def test_step_limit_never_overshoots(self):
        """Advancing by the proposed bound stops on the boundary, with a tiny min_step or a huge one."""
        for min_step in (1e-9 * R, 10 * R):
            feature = ObserverSmallSphere((0, 0, 0), R)
            propagation = SimplePropagation(min_step=min_step, max_step=100 * R)
            c = Candidate(id=PROTON, energy=units.EeV, position=(5 * R, 0, 0),
                          direction=(-1, 0, 0))

            feature.check_detection(c)
            assert c.next_step == pytest.approx(4 * R)

            propagation.process(c)
            d = np.linalg.norm(c.current.position)
            assert d >= R * (1 - 1e-12)
            assert d == pytest.approx(R, rel=1e-12)
            assert feature.check_detection(c) == DetectionState.DETECTED

    @pytest.mark.parametrize("impact", [0.0, 0.5, 0.9, 0.99])
    def test_oblique_approach_never_overshoots(self, impact):
        """Off-axis paths stay outside until detection, with min_step far above the radius."""
        feature = ObserverSmallSphere((0, 0, 0), R)
        propagation = SimplePropagation(min_step=10 * R, max_step=100 * R)
        c = Candidate(id=PROTON, energy=units.EeV, position=(5 * R, impact * R, 0),
                      direction=(-1, 0, 0))

        for _ in range(10_000):
            if feature.check_detection(c) == DetectionState.DETECTED:
                break
            bound = c.next_step
            propagation.process(c)
            assert c.current_step <= bound
            assert np.linalg.norm(c.current.position) >= R * (1 - 1e-12)
        else:
            pytest.fail("candidate never entered the sphere")
        assert np.linalg.norm(c.current.position) <= R * (1 + BOUNDARY_TOLERANCE)

    def test_boundary_band_counts_as_inside(self):
        feature = ObserverSmallSphere((0, 0, 0), R)
        c = moved((2 * R, 0, 0), (R * (1 + 0.5 * BOUNDARY_TOLERANCE), 0, 0))
        assert feature.check_detection(c) == DetectionState.DETECTED
        assert math.isinf(c.next_step)

    def test_negative_radius(self):
        with pytest.raises(ConfigurationError):
            ObserverSmallSphere((0, 0, 0), -1.0)


class TestLargeSphere:
    """Detection on leaving a sphere."""

    def test_leaving(self):
        c = moved((0.5 * R, 0, 0), (2 * R, 0, 0))
        assert ObserverLargeSphere((0, 0, 0), R).check_detection(c) == DetectionState.DETECTED

    def test_already_outside(self):
        c = moved((2 * R, 0, 0), (3 * R, 0, 0))
        assert ObserverLargeSphere((0, 0, 0), R).check_detection(c) == DetectionState.NOTHING

    def test_inside_limits_step(self):
        c = moved((0, 0, 0), (0.25 * R, 0, 0))
        assert ObserverLargeSphere((0, 0, 0), R).check_detection(c) == DetectionState.NOTHING
        assert c.next_step == pytest.approx(0.75 * R)

    def test_oblique_exit_detected(self):
        feature = ObserverLargeSphere((0, 0, 0), R)
        propagation = SimplePropagation(min_step=10 * R, max_step=100 * R)
        c = Candidate(id=PROTON, energy=units.EeV, position=(0.5 * R, 0.3 * R, 0),
                      direction=(1, 0, 0))

        for _ in range(10_000):
            if feature.check_detection(c) == DetectionState.DETECTED:
                break
            propagation.process(c)
            assert np.linalg.norm(c.current.position) <= R * (1 + 1e-12)
        else:
            pytest.fail("candidate never left the sphere")


class TestPoint:
    """One-dimensional observer at x = 0."""

    def test_positive_x(self):
        c = moved((3 * R, 0, 0), (2 * R, 0, 0))
        assert ObserverPoint().check_detection(c) == DetectionState.NOTHING
        assert c.next_step == pytest.approx(2 * R)

    @pytest.mark.parametrize("x", [0.0, -1.0])
    def test_reached(self, x):
        c = moved((1.0, 0, 0), (x, 0, 0))
        assert ObserverPoint().check_detection(c) == DetectionState.DETECTED
        assert math.isinf(c.next_step)


class TestVetoes:
    """Species and redshift vetoes."""

    @pytest.mark.parametrize("z, expected", [
        (0.05, DetectionState.NOTHING),
        (0.0, DetectionState.NOTHING),
        (0.2, DetectionState.VETO),
    ])
    def test_redshift_window(self, z, expected):
        c = Candidate(redshift=z)
        assert ObserverRedshiftWindow(0.0, 0.1).check_detection(c) == expected

    def test_redshift_window_below(self):
        c = Candidate(redshift=0.01)
        assert ObserverRedshiftWindow(0.05, 0.1).check_detection(c) == DetectionState.VETO

    def test_redshift_window_invalid(self):
        with pytest.raises(ConfigurationError):
            ObserverRedshiftWindow(0.2, 0.1)

    @pytest.mark.parametrize("pid", [NU_E, NU_MU, NU_TAU, -NU_E, -NU_TAU])
    def test_neutrino_veto_lets_neutrinos_pass(self, pid):
        assert ObserverNeutrinoVeto().check_detection(Candidate(id=pid)) == DetectionState.NOTHING

    @pytest.mark.parametrize("pid", [PHOTON, ELECTRON, PROTON])
    def test_neutrino_veto_rejects_others(self, pid):
        assert ObserverNeutrinoVeto().check_detection(Candidate(id=pid)) == DetectionState.VETO

    @pytest.mark.parametrize("pid", [ELECTRON, -ELECTRON, MUON, TAU, -TAU])
    def test_charged_lepton_veto(self, pid):
        feature = ObserverChargedLeptonVeto()
        assert feature.check_detection(Candidate(id=pid)) == DetectionState.NOTHING
        assert feature.check_detection(Candidate(id=NU_E)) == DetectionState.VETO

    def test_photon_veto(self):
        feature = ObserverPhotonVeto()
        assert feature.check_detection(Candidate(id=PHOTON)) == DetectionState.NOTHING
        assert feature.check_detection(Candidate(id=PROTON)) == DetectionState.VETO


class TestObserver:
    """Combination of features."""

    def test_detection_flags_and_deactivates(self):
        log = []
        first = RecordingFeature(DetectionState.DETECTED, log)
        second = RecordingFeature(DetectionState.NOTHING, log)
        obs = Observer()
        obs.add(first).add(second)
        obs.set_flag("Detected", "yes")

        c = Candidate()
        obs.process(c)

        assert not c.active
        assert c.get_property("Detected") == "yes"
        assert log == [first, second]

    def test_veto_beats_detection(self):
        """A single veto suppresses detection, whatever the feature order."""
        for features in ([DetectionState.DETECTED, DetectionState.VETO],
                         [DetectionState.VETO, DetectionState.DETECTED]):
            log = []
            obs = Observer()
            for verdict in features:
                obs.add(RecordingFeature(verdict, log))
            obs.set_flag("Detected")

            c = Candidate()
            assert obs.check(c) == DetectionState.VETO
            obs.process(c)
            assert c.active
            assert not c.has_property("Detected")
            assert log == []

    def test_all_features_checked_after_veto(self):
        """Step limits are applied even when an earlier feature vetoes."""
        obs = Observer()
        obs.add(ObserverPhotonVeto())
        obs.add(ObserverSmallSphere((0, 0, 0), R))

        c = moved((6 * R, 0, 0), (5 * R, 0, 0), id=PROTON)
        obs.process(c)
        assert c.active
        assert c.next_step == pytest.approx(4 * R)

    def test_sphere_with_photon_veto(self):
        obs = Observer()
        obs.add(ObserverSmallSphere((0, 0, 0), R))
        obs.add(ObserverPhotonVeto())
        obs.set_flag("Detected")

        proton = moved((2 * R, 0, 0), (0.5 * R, 0, 0), id=PROTON)
        obs.process(proton)
        assert proton.active and not proton.has_property("Detected")

        photon = moved((2 * R, 0, 0), (0.5 * R, 0, 0), id=PHOTON)
        obs.process(photon)
        assert not photon.active and photon.has_property("Detected")

    def test_keep_active(self):
        obs = Observer(make_inactive=False)
        obs.add(ObserverDetectAll())
        obs.set_flag("Seen")

        c = Candidate()
        obs.process(c)
        assert c.active
        assert c.get_property("Seen") is True

    def test_no_features_detects_nothing(self):
        c = Candidate()
        Observer().process(c)
        assert c.active

    def test_description(self):
        obs = Observer()
        obs.add(ObserverPoint())
        obs.set_flag("Detected")
        text = obs.description
        assert "ObserverPoint" in text
        assert "Detected" in text


class TestObserverOutput:
    """Output written on detection."""

    def test_output_3d(self, tmp_path):
        path = tmp_path / "events.txt"
        output = ObserverOutput3D(path)
        obs = Observer()
        obs.add(ObserverSmallSphere((0, 0, 0), R))
        obs.add(output)

        obs.process(moved((2 * R, 0, 0), (0.5 * R, 0, 0)))
        obs.process(moved((3 * R, 0, 0), (2 * R, 0, 0)))
        output.close()

        records = [line for line in path.read_text().splitlines()
                   if not line.startswith("#")]
        assert len(records) == 1
        assert len(records[0].split("\t")) == 18

    def test_output_1d(self, tmp_path):
        """Column D holds the trajectory length."""
        path = tmp_path / "events1d.txt"
        output = ObserverOutput1D(path)
        obs = Observer().add(ObserverPoint()).add(output)

        c = moved((5 * units.Mpc, 0, 0), (-1.0, 0, 0))
        c.trajectory_length = 3 * units.Mpc
        obs.process(c)
        output.close()

        text = path.read_text()
        assert "# D   Comoving trajectory length [Mpc]" in text
        records = [line for line in text.splitlines() if not line.startswith("#")]
        assert len(records) == 1
        columns = records[0].split("\t")
        assert int(columns[0]) == PROTON
        assert float(columns[2]) == pytest.approx(3.0)

    @pytest.mark.parametrize("cls", [ObserverOutput1D, ObserverOutput3D])
    def test_context_manager_closes(self, tmp_path, cls):
        with cls(tmp_path / "events.txt") as output:
            assert not output.writer.closed
        assert output.writer.closed
