#!/usr/bin/env python3
"""
Quick test script to verify installation.

Run this after setting up the environment to check everything works.
"""

import sys
import time

print("="*70)
print("COSMIC_MC Installation Test")
print("="*70)

# Test 1: Import packages
print("\n1. Testing imports...")
try:
    import numpy as np
    import numba
    import scipy
    import h5py
    import yaml
    import tqdm
except ImportError as e:
    print(f"   ✗ Missing dependency: {e}")
    sys.exit(1)
for module in (np, numba, scipy, h5py, yaml, tqdm):
    print(f"   ✓ {module.__name__}: {module.__version__}")

# Test 2: Import cosmic_mc
print("\n2. Testing cosmic_mc imports...")
import cosmic_mc
from cosmic_mc import Candidate, Observer, PropagationEngine, SimulationConfig, Source
from cosmic_mc.core import units
from cosmic_mc.modules import ObserverPoint, SimplePropagation
from cosmic_mc.source import (
    SourceDirection,
    SourceEnergy,
    SourceParticleType,
    SourceUniform1D,
)
print(f"   ✓ cosmic_mc {cosmic_mc.__version__}")

# Test 3: Cosmology tables
print("\n3. Testing cosmology...")
from cosmic_mc.physics import default_cosmology
cosmo = default_cosmology()
d = cosmo.comoving_distance(1.0) / units.Mpc
print(f"   ✓ Comoving distance to z = 1: {d:.0f} Mpc")
print(f"     (Expected: ~3400 Mpc for Planck 2013 parameters)")

# Test 4: Source
print("\n4. Testing source...")
source = Source()
source.add(SourceParticleType(cosmic_mc.particle_id('proton')))
source.add(SourceEnergy(10 * units.EeV))
source.add(SourceUniform1D(1 * units.Mpc, 50 * units.Mpc))
source.add(SourceDirection())
candidate = source.get_candidate()
print(f"   ✓ {candidate.current.description()}")

# Test 5: Numba JIT compilation and propagation
print("\n5. Testing propagation (includes JIT compilation)...")
observer = Observer()
observer.add(ObserverPoint())
observer.set_flag('Detected')
engine = PropagationEngine(SimulationConfig(n_threads=1, show_progress=False))
engine.add(SimplePropagation(1 * units.kpc, 1 * units.Mpc))
engine.add(observer)

start = time.time()
engine.run(Candidate(id=cosmic_mc.particle_id('proton'), energy=units.EeV,
                     position=(10 * units.Mpc, 0, 0)))
print(f"   ✓ First run (with compilation): {time.time() - start:.2f}s")

start = time.time()
candidates, stats = engine.run_source(source, 1000, seed=1)
n_detected = sum(c.has_property('Detected') for c in candidates)
print(f"   ✓ 1000 candidates: {time.time() - start:.2f}s, {n_detected} detected")

# Summary
print("\n" + "="*70)
print("Installation test complete!")
print("="*70)
