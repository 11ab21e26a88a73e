"""
Recording Presets Library
=========================

Pre-configured StarSim recordings organized by category. Each preset sets
the body count, the update method and its accuracy, and the frame schedule.

Categories:
- TINY: Quick runs for testing
- ORBITAL: Bodies orbiting a supermassive central attractor
- VALIDATION: Exact brute-force runs for comparing against Barnes-Hut
- CLOUD: Free-falling clouds without a central attractor
"""

from typing import List, Optional, Tuple

from config import starsim as config

SIM = config.SIMULATION

PRESETS = {}

# -----------------------------------------------------------------------------
# TINY PRESETS
# -----------------------------------------------------------------------------

PRESETS["tiny_orbits"] = {
    "name": "Tiny Orbits",
    "description": "A few dozen bodies around a central attractor",
    "category": "TINY",
    "num_bodies": 50,
    "central_attractor": True,
    "method": "barnes_hut",
    "theta": SIM["theta"],
    "total_frames": 100,
    "substeps": 1,
    "dt": SIM["time_step"],
    "seed": 1,
}

# -----------------------------------------------------------------------------
# ORBITAL PRESETS
# -----------------------------------------------------------------------------

PRESETS["orbital_500"] = {
    "name": "Orbital 500",
    "description": "Default system: 500 bodies around a 10^6 solar mass core",
    "category": "ORBITAL",
    "num_bodies": 500,
    "central_attractor": True,
    "method": "barnes_hut",
    "theta": SIM["theta"],
    "total_frames": 600,
    "substeps": 2,
    "dt": SIM["time_step"] / 2,
    "seed": 7,
}

PRESETS["orbital_5k"] = {
    "name": "Orbital 5K",
    "description": "Dense disk of 5,000 bodies, coarser opening angle",
    "category": "ORBITAL",
    "num_bodies": 5_000,
    "central_attractor": True,
    "method": "barnes_hut",
    "theta": 1.0,
    "total_frames": 600,
    "substeps": 1,
    "dt": SIM["time_step"],
    "seed": 11,
}

# -----------------------------------------------------------------------------
# VALIDATION PRESETS
# -----------------------------------------------------------------------------

PRESETS["exact_200"] = {
    "name": "Exact 200",
    "description": "All-pairs reference run for accuracy comparisons",
    "category": "VALIDATION",
    "num_bodies": 200,
    "central_attractor": True,
    "method": "brute_force",
    "theta": 0.0,
    "total_frames": 300,
    "substeps": 1,
    "dt": SIM["time_step"],
    "seed": 7,
}

# -----------------------------------------------------------------------------
# CLOUD PRESETS
# -----------------------------------------------------------------------------

PRESETS["cloud_1k"] = {
    "name": "Cloud 1K",
    "description": "Self-gravitating cloud with no central attractor",
    "category": "CLOUD",
    "num_bodies": 1_000,
    "central_attractor": False,
    "method": "barnes_hut",
    "theta": 0.7,
    "total_frames": 400,
    "substeps": 1,
    "dt": SIM["time_step"],
    "seed": 3,
}


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

CATEGORY_ORDER = ["TINY", "ORBITAL", "VALIDATION", "CLOUD"]


def get_preset_list() -> List[Tuple[str, dict]]:
    """Get list of all presets sorted by category."""
    return sorted(
        PRESETS.items(),
        key=lambda x: (CATEGORY_ORDER.index(x[1]["category"]) if x[1]["category"] in CATEGORY_ORDER else 99, x[0])
    )


def print_preset_menu():
    """Print the presets grouped by category."""
    current_category = None

    print("\n" + "=" * 70)
    print("  STARSIM RECORDING PRESETS")
    print("=" * 70)

    for idx, (key, preset) in enumerate(get_preset_list()):
        if preset["category"] != current_category:
            current_category = preset["category"]
            print(f"\n{'─' * 70}")
            print(f"  {current_category}")
            print(f"{'─' * 70}")

        print(f"  [{idx:2d}] {key:<15} {preset['num_bodies']:>7,} bodies | "
              f"{preset['total_frames']:>4} frames | {preset['method']}")
        print(f"       {preset['description']}")

    print(f"\n{'=' * 70}")


def get_preset_config(key: str) -> Optional[dict]:
    """Get a preset configuration by key, adding session_name."""
    if key not in PRESETS:
        return None

    preset = PRESETS[key].copy()
    preset["session_name"] = key
    return preset
