import numpy as np

# SI units throughout (m, A, T)
mu0 = 4.0 * np.pi * 1e-7          # H/m
mu0_over_4pi = 1e-7               # wire prefactor, mu0/(4 pi)
mu0_over_pi = 4e-7                # ring prefactor, mu0/pi

# AGM elliptic integral solver
ELLIP_ITMAX = 100
ELLIP_ERRMAX = 1e-12
