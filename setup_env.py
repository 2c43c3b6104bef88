#!/usr/bin/env python3
"""Cross-platform setup script for stategraph.

Usage:
    python setup_env.py

Creates a virtual environment, installs dependencies, and verifies the setup.
"""
import os
import subprocess
import sys


def main():
    root = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(root, ".venv")

    is_windows = sys.platform == "win32"
    if is_windows:
        python = os.path.join(venv_dir, "Scripts", "python.exe")
        pip = os.path.join(venv_dir, "Scripts", "pip.exe")
    else:
        python = os.path.join(venv_dir, "bin", "python")
        pip = os.path.join(venv_dir, "bin", "pip")

    # Step 1: Create venv
    if not os.path.exists(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])
        print(f"  Created: {venv_dir}")
    else:
        print(f"Virtual environment already exists: {venv_dir}")

    # Step 2: Upgrade pip
    print("\nUpgrading pip...")
    subprocess.check_call([python, "-m", "pip", "install", "--upgrade", "pip"],
                          stdout=subprocess.DEVNULL)

    # Step 3: Install package in editable mode with dev dependencies
    print("Installing stategraph with dev dependencies...")
    subprocess.check_call([pip, "install", "-e", f"{root}[dev]"])

    # Step 4: Smoke test -- load a scan and simulate from its entry state
    print("\nRunning smoke test (load combat_scan.json)...")
    smoke_test = """
import sys
sys.path.insert(0, 'src')
from stategraph.scan_loader import load_scan_file
from stategraph.graph_model import build_snapshot
from stategraph.simulation import SimulationSession
scan = load_scan_file('examples/combat_scan.json')
snap = build_snapshot(scan)
print(f'  Loaded {len(snap.states)} states, {len(snap.transitions)} transitions')
sim = SimulationSession(snap)
sim.click(snap.states[0].id)
print(f'  Unreachable: {len(sim.unreachable)}, dead ends: {len(sim.dead_ends)}')
"""
    result = subprocess.run(
        [python, "-c", smoke_test],
        capture_output=True, text=True, cwd=root,
    )
    if result.returncode != 0:
        print("  Smoke test FAILED:")
        print(f"  {result.stderr.strip()}")
        return 1
    else:
        print(result.stdout.strip())

    # Step 5: Success
    print("\n" + "=" * 50)
    print("Setup complete!")
    print("=" * 50)
    if is_windows:
        activate = ".venv\\Scripts\\activate"
    else:
        activate = "source .venv/bin/activate"
    print(f"\nTo activate:  {activate}")
    print("To launch:    python -m stategraph")
    print("To scan:      STATEGRAPH_SCAN_PATH=examples/combat_scan.json python -m stategraph")
    print("To test:      pytest")
    print("Web UI:       http://localhost:8050")
    return 0


if __name__ == "__main__":
    sys.exit(main())
