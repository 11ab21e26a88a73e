"""Configuration for the StarSim gravitational simulation (SI units)."""

# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

G = 6.673e-11                      # m^3 kg^-1 s^-2
SOLAR_MASS = 1.98892e30            # kg

FRAME_RATE = 60
SECONDS_PER_FRAME = 1e7
TIME_STEP = SECONDS_PER_FRAME * FRAME_RATE

UNIVERSE_SIZE = 1e18               # Side length of the simulated cube (m)

# =============================================================================

# Core simulation parameters
SIMULATION = {
    "G": G,
    "softening": 3e4,                      # Softening length to prevent singularities
    "theta": 0.8,                          # Barnes-Hut opening angle (lower = more exact)
    "universe_radius": UNIVERSE_SIZE / 2,  # Bodies beyond this bound stop evolving
    "time_step": TIME_STEP,
    "max_tree_depth": 64,                  # Octant subdivision limit
    "method": "barnes_hut",                # "barnes_hut" or "brute_force"
}

# Initial conditions
GENERATOR = {
    "body_count": 500,
    "central_attractor": True,
    "central_body_mass": SOLAR_MASS * 1e6,
    "solar_mass": SOLAR_MASS,
    "vertical_spread": 2e4,                # Cap on the random vertical velocity (m/s)
    "seed": None,
}

# Orbit trails
TRACER = {
    "stored_positions": 100,
    "sample_rate": 15,                     # Keep one sample every N updates
}
