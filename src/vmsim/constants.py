"""Physical constants used by the deck.

SI values come from ``scipy.constants`` (CODATA 2018). The default deck
runs in normalized units (epsilon_0 = mu_0 = 1), see
:class:`vmsim.config.MaxwellConfig`.
"""

import scipy.constants as _sc

# Electromagnetic
epsilon_0 = _sc.epsilon_0     # Vacuum permittivity [F/m]
mu_0 = _sc.mu_0               # Vacuum permeability [H/m]
c = _sc.c                     # Speed of light [m/s]
e = _sc.e                     # Elementary charge [C]

# Masses
m_e = _sc.m_e                 # Electron mass [kg]
m_p = _sc.m_p                 # Proton mass [kg]

# Mathematical
pi = _sc.pi

# Normalized units
EPSILON_0_NORMALIZED = 1.0
MU_0_NORMALIZED = 1.0
PROTON_ELECTRON_MASS_RATIO = m_p / m_e   # 1836.15...
