# config.py
# Tuning defaults shared by the pricers. Every pricer accepts keyword
# overrides; these are only the values used when the caller is silent.

# Simulation sizes
MC_PATHS = 50_000            # vanilla Monte Carlo, Heston, jump, exotics
LATTICE_STEPS = 200          # binomial tree
HESTON_STEPS = 100
JUMP_STEPS = 100
ASIAN_OBSERVATIONS = 252     # daily averaging over a year
BARRIER_STEPS = 252          # daily monitoring over a year

# Chunking (memory cap per chunk / unit of parallel work)
CHUNK_SIZE = 100_000         # terminal-only draws per chunk
PATH_CHUNK_SIZE = 5_000      # full paths per chunk

# Variance reduction
CONTROL_VARIATE_BETA = -0.5  # fixed coefficient on the S_T control

# Implied volatility (Newton-Raphson)
IV_INITIAL_GUESS = 0.30
IV_TOLERANCE = 1e-6
IV_MAX_ITERATIONS = 100
IV_LOWER_BOUND = 0.001
IV_UPPER_BOUND = 5.0
VEGA_FLOOR = 1e-10

# Conventions
DAYS_PER_YEAR = 365          # theta is reported per calendar day
PER_PERCENT = 100.0          # vega / rho are reported per 1% move

# Jump-diffusion: per-step Bernoulli arrival is only accurate for small lam*dt
JUMP_PROB_WARN = 0.1

# Heston: number of paths whose terminal vol is kept as a sample
VOL_SAMPLE_SIZE = 100
