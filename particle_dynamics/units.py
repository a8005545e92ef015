"""Physical constants.

Internal units: nm, ps, amu (g/mol), kJ/mol, K, elementary charge.
"""

# Boltzmann constant, kJ/(mol*K)
BOLTZ = 0.0083144626

# Coulomb prefactor 1/(4*pi*eps0), kJ*nm/(mol*e^2)
ONE_4PI_EPS0 = 138.935456
