"""
SI units and physical constants.

All quantities inside cosmic_mc are SI: energies in joule, distances in
metre, charges in coulomb, masses in kilogram. Multiply by a unit to
convert into SI, divide to convert out of it:

    energy = 10 * EeV
    print(energy / EeV)
"""

import numpy as np

# Base units
meter = 1.0
second = 1.0
kilogram = 1.0
joule = 1.0
coulomb = 1.0

# Constants (CODATA 2018)
c_light = 299792458.0 * meter / second
c_squared = c_light * c_light
eplus = 1.602176634e-19 * coulomb
amu = 1.66053906660e-27 * kilogram
mass_proton = 1.67262192369e-27 * kilogram
mass_neutron = 1.67492749804e-27 * kilogram
mass_electron = 9.1093837015e-31 * kilogram
mass_muon = 1.883531627e-28 * kilogram
mass_tau = 3.16754e-27 * kilogram

# Energy
electronvolt = eplus * joule
eV = electronvolt
keV = 1e3 * eV
MeV = 1e6 * eV
GeV = 1e9 * eV
TeV = 1e12 * eV
PeV = 1e15 * eV
EeV = 1e18 * eV
ZeV = 1e21 * eV

# Length
kilometer = 1e3 * meter
km = kilometer
au = 149597870700.0 * meter
lightyear = 9460730472580800.0 * meter
parsec = 648000.0 / np.pi * au
pc = parsec
kpc = 1e3 * parsec
Mpc = 1e6 * parsec
Gpc = 1e9 * parsec

# Angles
radian = 1.0
degree = np.pi / 180.0
