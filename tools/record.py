"""
StarSim Offline Recorder
========================

Runs a simulation headless and saves every frame to disk for later
rendering or analysis.

Usage:
    python -m tools.record --preset tiny_orbits      # Start new recording
    python -m tools.record --preset orbital_500 -n 2k --frames 100
    python -m tools.record --resume orbital_500      # Resume interrupted recording
    python -m tools.record --status orbital_500      # Check recording status
    python -m tools.record --list                    # List all recordings

Output:
    recordings/<session_name>/
        metadata.json     - Recording settings
        frame_0000.zstd   - zstd compressed float32 positions
        state_0049.npz    - Resumable body state
        ...
"""

import argparse
import json
import struct
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
import zstandard as zstd

from starsim.body import Body
from starsim.generator import BodyGenerator, OrbitGenerator, make_rng
from starsim.updater import METHODS, BodyUpdater
from tools.presets import PRESETS, get_preset_config, print_preset_menu

DEFAULT_ROOT = Path("recordings")

# Save a resumable state snapshot every this many frames
STATE_INTERVAL = 50

FORMAT_ABSOLUTE = 1


# =============================================================================
# SESSION FILES
# =============================================================================

def get_recording_dir(session_name: str, root: Path = DEFAULT_ROOT) -> Path:
    """Get the directory for a recording session."""
    base = Path(root) / session_name
    base.mkdir(parents=True, exist_ok=True)
    return base


def save_metadata(rec_dir: Path, config: dict, start_time: float):
    """Save recording metadata."""
    metadata = {
        **config,
        "start_time": start_time,
        "start_datetime": datetime.fromtimestamp(start_time).isoformat(),
    }
    with open(rec_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)


def load_metadata(rec_dir: Path) -> dict:
    """Load recording metadata."""
    with open(rec_dir / "metadata.json", "r") as f:
        return json.load(f)


def compress_frame(positions: np.ndarray) -> bytes:
    """
    Compress one frame of positions.

    Format:
    - 1 byte: compression format (1=zstd absolute float32)
    - 4 bytes: compressed data size
    - N bytes: compressed positions
    """
    cctx = zstd.ZstdCompressor(level=10)
    compressed = cctx.compress(np.ascontiguousarray(positions, dtype=np.float32).tobytes())
    return struct.pack('B', FORMAT_ABSOLUTE) + struct.pack('I', len(compressed)) + compressed


def decompress_frame(data: bytes) -> np.ndarray:
    """Inverse of compress_frame; returns an (n, 3) float32 array."""
    if len(data) < 5:
        raise ValueError("Invalid compressed data")

    comp_format = struct.unpack('B', data[0:1])[0]
    if comp_format != FORMAT_ABSOLUTE:
        raise ValueError(f"Unknown compression format: {comp_format}")

    size = struct.unpack('I', data[1:5])[0]
    raw = zstd.ZstdDecompressor().decompress(data[5:5 + size])
    return np.frombuffer(raw, dtype=np.float32).reshape(-1, 3)


def save_frame(rec_dir: Path, frame_idx: int, positions: np.ndarray):
    with open(rec_dir / f"frame_{frame_idx:04d}.zstd", "wb") as f:
        f.write(compress_frame(positions))


def load_frame(rec_dir: Path, frame_idx: int) -> np.ndarray:
    frame_file = rec_dir / f"frame_{frame_idx:04d}.zstd"
    if not frame_file.exists():
        raise FileNotFoundError(f"Frame {frame_idx:04d} not found")
    return decompress_frame(frame_file.read_bytes())


def get_completed_frames(rec_dir: Path) -> int:
    """Count how many consecutive frames have been recorded."""
    count = 0
    while (rec_dir / f"frame_{count:04d}.zstd").exists():
        count += 1
    return count


def capture_state(bodies) -> dict:
    """Copy the full body state into arrays, detached from the live bodies."""
    return {
        "positions": positions_array(bodies),
        "velocities": np.array([[b.velocity.x, b.velocity.y, b.velocity.z] for b in bodies]),
        "masses": np.array([b.mass for b in bodies]),
        "generations": np.array([b.generation for b in bodies], dtype=np.int64),
        "ids": np.array([b.id for b in bodies], dtype=np.int64),
    }


def save_state(rec_dir: Path, frame_idx: int, state: dict):
    """Write a state captured right after a frame so recording can resume from it."""
    np.savez_compressed(rec_dir / f"state_{frame_idx:04d}.npz", **state)


def load_state(state_file: Path):
    with np.load(state_file) as state:
        return [
            Body(tuple(p), tuple(v), float(m), int(g), int(i))
            for p, v, m, g, i in zip(state["positions"], state["velocities"], state["masses"],
                                     state["generations"], state["ids"])
        ]


def find_latest_state(rec_dir: Path, max_frame: int) -> tuple:
    """Find the most recent state file and its frame number."""
    for frame in range(max_frame, -1, -1):
        state_file = rec_dir / f"state_{frame:04d}.npz"
        if state_file.exists():
            return state_file, frame
    return None, -1


def positions_array(bodies) -> np.ndarray:
    return np.array([[b.position.x, b.position.y, b.position.z] for b in bodies], dtype=np.float64)


# =============================================================================
# PROGRESS
# =============================================================================

def format_time(seconds: float) -> str:
    """Format seconds as a short human readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60):02d}s"
    return f"{int(seconds // 3600)}h {int(seconds % 3600 // 60):02d}m"


def print_progress(frame: int, total: int, frame_time: float, eta: float, updater: BodyUpdater):
    bar_width = 30
    filled = int(bar_width * (frame + 1) / total)
    bar = "█" * filled + "░" * (bar_width - filled)
    sys.stdout.write(
        f"\r[{bar}] {frame + 1}/{total} | {frame_time * 1000:6.1f} ms/frame | "
        f"nodes: {updater.tree_nodes:,} | out: {updater.excluded} | ETA: {format_time(eta)}  "
    )
    sys.stdout.flush()


# =============================================================================
# RECORDING
# =============================================================================

def _generate_initial_conditions(config: dict):
    rng = make_rng(config.get("seed"))
    generator = BodyGenerator(rng, OrbitGenerator(rng))
    return generator.generate_bodies(config["num_bodies"], config.get("central_attractor", True))


def record(config: dict, root: Path = DEFAULT_ROOT, resume: bool = False, quiet: bool = False) -> Path:
    """Record a session; returns the session directory."""
    rec_dir = get_recording_dir(config["session_name"], root)

    start_frame = 0
    bodies = None

    if resume:
        completed_frames = get_completed_frames(rec_dir)
        if completed_frames > 0:
            print(f"[Record] Found {completed_frames} completed frames")
            state_file, state_frame = find_latest_state(rec_dir, completed_frames)
            if state_file is not None:
                print(f"[Record] Loading state from frame {state_frame}")
                bodies = load_state(state_file)
                start_frame = state_frame + 1
                print(f"[Record] Resuming from frame {start_frame}")
            else:
                print("[Record] Warning: No state file found, recomputing from start...")

    if bodies is None:
        print(f"[Record] Starting new recording: {config['session_name']}")
        print(f"[Record] Bodies: {config['num_bodies']:,}, method={config['method']}, θ={config['theta']}")
        print(f"[Record] Frames: {config['total_frames']}, dt={config['dt']}, substeps={config['substeps']}")
        bodies = _generate_initial_conditions(config)
        save_metadata(rec_dir, config, time.time())

    updater = BodyUpdater(theta=config["theta"], method=config["method"])
    total_frames = config["total_frames"]
    substeps = config["substeps"]
    dt = config["dt"]

    start_time = time.time()
    frame_times = []
    frame = start_frame - 1
    # Last frame whose body state is fully known, and that state
    settled_frame, settled_state = -1, None

    try:
        for frame in range(start_frame, total_frames):
            frame_start = time.time()

            for _ in range(substeps):
                updater.advance(bodies, dt)

            state = capture_state(bodies)
            save_frame(rec_dir, frame, state["positions"])
            settled_frame, settled_state = frame, state

            if (frame + 1) % STATE_INTERVAL == 0:
                save_state(rec_dir, frame, state)
                old_state = rec_dir / f"state_{frame - STATE_INTERVAL:04d}.npz"
                if old_state.exists():
                    old_state.unlink()

            frame_time = time.time() - frame_start
            frame_times.append(frame_time)
            if not quiet:
                recent = frame_times[-10:]
                eta = sum(recent) / len(recent) * (total_frames - frame - 1)
                print_progress(frame, total_frames, frame_time, eta, updater)

        if settled_state is not None:
            save_state(rec_dir, settled_frame, settled_state)
        if not quiet:
            sys.stdout.write("\n")
        print("[Record] ✓ Recording complete!")
        print(f"[Record] Simulation time: {format_time(time.time() - start_time)}")
        print(f"[Record] Output: {rec_dir}")

    except KeyboardInterrupt:
        sys.stdout.write("\n")
        # Bodies may be part way through a frame; only the last finished one is resumable
        if settled_state is not None:
            save_state(rec_dir, settled_frame, settled_state)
        print(f"[Record] Paused at frame {frame}")
        print(f"[Record] To resume: python -m tools.record --resume {config['session_name']}")

    return rec_dir


def show_status(session_name: str, root: Path = DEFAULT_ROOT):
    """Show recording status for a specific session."""
    rec_dir = Path(root) / session_name

    if not (rec_dir / "metadata.json").exists():
        print(f"[Status] No recording found: {session_name}")
        return

    metadata = load_metadata(rec_dir)
    completed = get_completed_frames(rec_dir)
    total = metadata["total_frames"]
    pct = completed / total * 100

    print(f"\n[Status] Recording: {session_name}")
    print(f"  Bodies: {metadata['num_bodies']:,}")
    print(f"  Method: {metadata['method']} (θ={metadata['theta']})")
    print(f"  Progress: {completed}/{total} frames ({pct:.1f}%)")
    print(f"  Started: {metadata.get('start_datetime', 'unknown')}")

    if completed < total:
        print(f"\n  To resume: python -m tools.record --resume {session_name}")


def list_recordings(root: Path = DEFAULT_ROOT):
    """List all available recordings."""
    root = Path(root)
    if not root.exists():
        print("[List] No recordings directory found")
        return

    sessions = [d.name for d in root.iterdir() if d.is_dir() and (d / "metadata.json").exists()]
    if not sessions:
        print("[List] No recordings found")
        return

    print(f"\n[List] Found {len(sessions)} recording(s):\n")
    for session in sorted(sessions):
        rec_dir = root / session
        metadata = load_metadata(rec_dir)
        completed = get_completed_frames(rec_dir)
        total = metadata["total_frames"]
        status = "✓" if completed >= total else f"{completed / total * 100:.0f}%"
        print(f"  {session:30s} | {metadata['num_bodies']:>10,} bodies | {completed:>4}/{total:<4} frames | {status}")
    print()


def parse_number(value: str) -> int:
    """Parse number with optional suffix (k, m, K, M)."""
    value = value.strip().lower()
    multipliers = {'k': 1_000, 'm': 1_000_000}

    for suffix, mult in multipliers.items():
        if value.endswith(suffix):
            return int(float(value[:-1]) * mult)

    return int(value)


def main(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(description="StarSim offline recorder")
    parser.add_argument("session", nargs="?", help="Session name (for --resume or --status)")
    parser.add_argument("--preset", type=str, help="Use preset by name (e.g., 'tiny_orbits')")
    parser.add_argument("--resume", action="store_true", help="Resume interrupted recording")
    parser.add_argument("--status", action="store_true", help="Show recording status")
    parser.add_argument("--list", action="store_true", help="List all recordings")
    parser.add_argument("--bodies", "-n", type=str, help="Override number of bodies (e.g., 500, 10k)")
    parser.add_argument("--frames", "-f", type=int, help="Override number of frames")
    parser.add_argument("--theta", "-t", type=float, help="Override Barnes-Hut theta")
    parser.add_argument("--dt", type=float, help="Override time step (s)")
    parser.add_argument("--method", choices=METHODS, help="Override update method")
    parser.add_argument("--seed", type=int, help="Override random seed")
    parser.add_argument("--output", "-o", type=Path, default=DEFAULT_ROOT, help="Recordings directory")
    args = parser.parse_args(argv)

    if args.list:
        list_recordings(args.output)
        return

    if args.status:
        if args.session:
            show_status(args.session, args.output)
        else:
            list_recordings(args.output)
        return

    if args.resume:
        if not args.session:
            print("[Record] Error: --resume requires a session name")
            return
        rec_dir = args.output / args.session
        if not (rec_dir / "metadata.json").exists():
            print(f"[Record] No metadata found for session: {args.session}")
            return
        config = load_metadata(rec_dir)
        config["session_name"] = args.session
        record(config, args.output, resume=True)
        return

    if not args.preset:
        print_preset_menu()
        print("[Record] Choose a preset with --preset <name>")
        return

    config = get_preset_config(args.preset)
    if config is None:
        print(f"[Record] Unknown preset: {args.preset}")
        print("[Record] Available presets:")
        for key in sorted(PRESETS.keys()):
            print(f"  - {key}")
        return
    if args.session:
        config["session_name"] = args.session

    if args.bodies:
        try:
            config["num_bodies"] = parse_number(args.bodies)
            print(f"[Record] Override: {config['num_bodies']:,} bodies")
        except ValueError:
            print(f"[Record] Invalid bodies value: {args.bodies}")
            return

    if args.frames:
        config["total_frames"] = args.frames
        print(f"[Record] Override: {args.frames} frames")

    if args.theta is not None:
        config["theta"] = args.theta
        print(f"[Record] Override: θ={args.theta}")

    if args.dt:
        config["dt"] = args.dt
        print(f"[Record] Override: dt={args.dt}")

    if args.method:
        config["method"] = args.method
        print(f"[Record] Override: method={args.method}")

    if args.seed is not None:
        config["seed"] = args.seed

    record(config, args.output, resume=False)


if __name__ == "__main__":
    main()
